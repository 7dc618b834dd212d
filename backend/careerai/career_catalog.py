"""Static career catalog and learning resources used when generation is unavailable."""

from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, Field

from .state import CareerRecommendation, LearningPathEntry, LearningResource

class CatalogCareer(BaseModel):
    recommendation: CareerRecommendation
    related_interests: List[str] = Field(default_factory=list)
    preferred_education: List[str] = Field(default_factory=list)

def _career(
    *,
    related_interests: List[str],
    preferred_education: List[str],
    **fields: object,
) -> CatalogCareer:
    return CatalogCareer(
        recommendation=CareerRecommendation.model_validate(fields),
        related_interests=related_interests,
        preferred_education=preferred_education,
    )

CAREER_CATALOG: List[CatalogCareer] = [
    _career(
        title="Full Stack Developer",
        description=(
            "Build end-to-end web applications using modern frameworks and cloud technologies. "
            "Work on both frontend user interfaces and backend server logic to create complete digital solutions."
        ),
        skills=["JavaScript", "React", "Node.js", "MongoDB", "Express.js", "HTML/CSS", "Git", "Supabase"],
        salaryRange="₹6-18 LPA",
        growth="High",
        companies=["TCS", "Infosys", "Wipro", "Accenture", "Flipkart"],
        timeToEntry="6-12 months",
        reasoning="High demand in Indian IT sector with excellent growth opportunities for freshers.",
        careerPath="Junior Developer → Senior Developer → Tech Lead → Engineering Manager",
        responsibilities=[
            "Develop responsive web applications using modern frameworks",
            "Design and implement RESTful APIs and database schemas",
            "Collaborate with designers and product managers on feature development",
            "Write clean, maintainable code and conduct code reviews",
            "Deploy and maintain applications on cloud platforms",
        ],
        industryOutlook="Excellent growth prospects with India's booming tech sector and digital transformation initiatives.",
        jobOpenings="High",
        related_interests=["Software Development", "Web Development", "Technology"],
        preferred_education=["Computer Science/IT", "Electronics & Communication"],
    ),
    _career(
        title="Data Scientist",
        description=(
            "Analyze complex datasets to derive actionable business insights and build predictive models. "
            "Use statistical methods and machine learning to solve real-world problems."
        ),
        skills=["Python", "Machine Learning", "SQL", "Statistics", "Pandas", "Scikit-learn", "Tableau", "PostgreSQL"],
        salaryRange="₹8-25 LPA",
        growth="Very High",
        companies=["Google", "Microsoft", "Flipkart", "Zomato", "Paytm"],
        timeToEntry="8-15 months",
        reasoning="Rapidly growing field with high demand across industries in India's data-driven economy.",
        careerPath="Data Analyst → Data Scientist → Senior Data Scientist → Data Science Manager",
        responsibilities=[
            "Collect, clean, and analyze large datasets from various sources",
            "Build and deploy machine learning models for business problems",
            "Create data visualizations and reports for stakeholders",
            "Collaborate with engineering teams to implement data solutions",
            "Stay updated with latest data science techniques and tools",
        ],
        industryOutlook="Explosive growth expected with India's focus on AI and data analytics across sectors.",
        jobOpenings="Very High",
        related_interests=["Data Science & Analytics", "Artificial Intelligence/Machine Learning", "Analytics"],
        preferred_education=["Computer Science/IT", "Mathematics", "Statistics"],
    ),
    _career(
        title="Product Manager",
        description=(
            "Lead product development from conception to launch, working with cross-functional teams. "
            "Define product strategy, gather requirements, and ensure successful product delivery."
        ),
        skills=["Product Strategy", "Analytics", "Communication", "Agile", "User Research", "Roadmapping", "SQL", "Excel"],
        salaryRange="₹12-30 LPA",
        growth="High",
        companies=["Swiggy", "Paytm", "Ola", "Byju's", "Razorpay"],
        timeToEntry="12-24 months",
        reasoning="High-impact role with excellent compensation, suited to business acumen plus technical understanding.",
        careerPath="Associate PM → Product Manager → Senior PM → VP Product",
        responsibilities=[
            "Define product vision and strategy based on market research",
            "Gather and prioritize product requirements from stakeholders",
            "Work with engineering and design teams to deliver features",
            "Analyze product metrics and user feedback for improvements",
            "Present product updates to leadership and stakeholders",
        ],
        industryOutlook="Strong demand as Indian startups and enterprises focus on product-led growth.",
        jobOpenings="High",
        related_interests=["Product Management", "Business Analysis", "Strategy"],
        preferred_education=["Computer Science/IT", "Commerce/Business", "Engineering"],
    ),
    _career(
        title="UI/UX Designer",
        description=(
            "Design intuitive and engaging user interfaces for web and mobile applications. "
            "Focus on user experience research, wireframing, prototyping, and visual design."
        ),
        skills=["Figma", "Adobe XD", "User Research", "Prototyping", "Design Systems", "HTML/CSS", "Sketch", "InVision"],
        salaryRange="₹5-15 LPA",
        growth="High",
        companies=["Razorpay", "Freshworks", "Zoho", "PhonePe", "Design Studios"],
        timeToEntry="6-12 months",
        reasoning="Growing demand for user-centered design as Indian companies prioritize user experience.",
        careerPath="Junior Designer → UX Designer → Senior Designer → Design Lead",
        responsibilities=[
            "Conduct user research and create user personas and journey maps",
            "Design wireframes, mockups, and interactive prototypes",
            "Collaborate with developers to ensure design implementation",
            "Create and maintain design systems and style guides",
            "Test and iterate designs based on user feedback",
        ],
        industryOutlook="Excellent prospects as digital products become more sophisticated in India.",
        jobOpenings="High",
        related_interests=["UI/UX Design", "Graphic Design", "Creative"],
        preferred_education=["Design", "Computer Science/IT", "Arts"],
    ),
    _career(
        title="Backend Developer",
        description=(
            "Build robust server-side applications and APIs using modern backend technologies. "
            "Focus on database design, API development, and system architecture."
        ),
        skills=["Node.js", "Python", "PostgreSQL", "REST APIs", "Docker", "Supabase", "Express.js", "Authentication"],
        salaryRange="₹7-20 LPA",
        growth="Very High",
        companies=["Amazon", "Flipkart", "Myntra", "Uber", "Tech Startups"],
        timeToEntry="8-15 months",
        reasoning="Critical role in modern software development with high demand for scalable backend systems.",
        careerPath="Backend Developer → Senior Developer → Backend Architect → Engineering Manager",
        responsibilities=[
            "Design and implement scalable APIs and microservices",
            "Optimize database queries and manage data architecture",
            "Implement security best practices and authentication systems",
            "Collaborate with frontend teams on API integration",
            "Monitor system performance and implement optimizations",
        ],
        industryOutlook="Exceptional growth as Indian companies build complex digital platforms.",
        jobOpenings="Very High",
        related_interests=["Backend Development", "Database Design", "System Architecture"],
        preferred_education=["Computer Science/IT", "Electronics & Communication"],
    ),
]

def _resources(*entries: tuple[str, str, str, float]) -> List[LearningResource]:
    return [LearningResource(name=name, type=kind, url=url, rating=rating) for name, kind, url, rating in entries]

LEARNING_RESOURCES: Dict[str, LearningPathEntry] = {
    "JavaScript": LearningPathEntry(
        skill="JavaScript",
        priority="High",
        time_estimate="2-3 months",
        resources=_resources(
            ("JavaScript.info - Complete Tutorial", "Free", "https://javascript.info", 4.8),
            ("Complete JavaScript Course (Udemy)", "Paid", "#", 4.7),
            ("freeCodeCamp JavaScript", "Free", "https://freecodecamp.org", 4.6),
        ),
    ),
    "React": LearningPathEntry(
        skill="React",
        priority="High",
        time_estimate="2-3 months",
        resources=_resources(
            ("React Official Tutorial", "Free", "https://react.dev/learn", 4.8),
            ("Complete React Developer Course", "Paid", "#", 4.7),
            ("React Projects for Beginners", "Free", "#", 4.6),
        ),
    ),
    "Supabase": LearningPathEntry(
        skill="Supabase",
        priority="Medium",
        time_estimate="1-2 months",
        resources=_resources(
            ("Supabase Official Documentation", "Free", "https://supabase.com/docs", 4.8),
            ("Build with Supabase Course", "Free", "https://supabase.com/docs/guides/getting-started", 4.7),
            ("Supabase YouTube Channel", "Free", "https://youtube.com/@supabase", 4.6),
        ),
    ),
    "PostgreSQL": LearningPathEntry(
        skill="PostgreSQL",
        priority="High",
        time_estimate="2-3 months",
        resources=_resources(
            ("PostgreSQL Tutorial", "Free", "https://postgresqltutorial.com", 4.7),
            ("Complete PostgreSQL Course", "Paid", "#", 4.8),
            ("PostgreSQL Documentation", "Free", "https://postgresql.org/docs", 4.6),
        ),
    ),
}

def default_learning_entry(skill: str) -> LearningPathEntry:
    return LearningPathEntry(
        skill=skill,
        priority="Medium",
        time_estimate="2-3 months",
        resources=_resources(
            (f"Learn {skill} - Official Docs", "Free", "#", 4.5),
            (f"{skill} Complete Course (Udemy)", "Paid", "#", 4.6),
            (f"{skill} Tutorial (YouTube)", "Free", "#", 4.4),
        ),
    )

__all__ = [
    "CAREER_CATALOG",
    "CatalogCareer",
    "LEARNING_RESOURCES",
    "default_learning_entry",
]
