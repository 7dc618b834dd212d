"""Career assessment question catalog, answer validation and draft autosave."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from .local_cache import DRAFT_KEY, LocalCache
from .state import ProfileAnswers

logger = logging.getLogger(__name__)

FieldType = Literal["text", "number", "select", "multiselect", "textarea"]

MIN_CAREER_INTERESTS = 3
MAX_STRENGTHS = 5
PROGRESS_FIELDS = ("name", "age", "education", "careerInterests")


class AssessmentValidationError(ValueError):
    """Raised with every problem found in a submitted assessment."""

    def __init__(self, errors: Dict[str, str]) -> None:
        self.errors = dict(errors)
        summary = "; ".join(f"{field}: {message}" for field, message in self.errors.items())
        super().__init__(f"Assessment is incomplete: {summary}")


class QuestionField(BaseModel):
    name: str
    label: str
    type: FieldType
    required: bool = False
    options: List[str] = Field(default_factory=list)
    min: Optional[int] = None
    max: Optional[int] = None
    placeholder: Optional[str] = None
    description: Optional[str] = None


class QuestionSection(BaseModel):
    id: str
    title: str
    description: str
    fields: List[QuestionField]


def _field(name: str, label: str, type: FieldType, **extra: Any) -> QuestionField:
    return QuestionField(name=name, label=label, type=type, **extra)


QUESTION_CATALOG: List[QuestionSection] = [
    QuestionSection(
        id="personal",
        title="Personal Information",
        description="Tell us about yourself to get personalized recommendations",
        fields=[
            _field("name", "Full Name", "text", required=True, placeholder="Enter your full name"),
            _field("age", "Age", "number", required=True, min=16, max=35, placeholder="Enter your age"),
            _field(
                "education",
                "Current Education Level",
                "select",
                required=True,
                options=[
                    "12th Grade (Science)",
                    "12th Grade (Commerce)",
                    "12th Grade (Arts)",
                    "Diploma",
                    "Undergraduate (1st Year)",
                    "Undergraduate (2nd Year)",
                    "Undergraduate (3rd Year)",
                    "Undergraduate (Final Year)",
                    "Graduate",
                    "Postgraduate",
                    "PhD",
                ],
            ),
            _field(
                "location",
                "Location (City, State)",
                "text",
                required=True,
                placeholder="e.g., Bangalore, Karnataka",
            ),
            _field(
                "fieldOfStudy",
                "Field of Study",
                "select",
                required=True,
                options=[
                    "Computer Science/IT",
                    "Electronics & Communication",
                    "Mechanical Engineering",
                    "Civil Engineering",
                    "Electrical Engineering",
                    "Chemical Engineering",
                    "Biotechnology",
                    "Mathematics",
                    "Physics",
                    "Chemistry",
                    "Commerce/Business",
                    "Economics",
                    "Arts/Humanities",
                    "Other",
                ],
            ),
        ],
    ),
    QuestionSection(
        id="skills",
        title="Technical Skills & Experience",
        description="Help us understand your current technical capabilities",
        fields=[
            _field(
                "programmingLanguages",
                "Programming Languages",
                "multiselect",
                description="Select all programming languages you know",
                options=[
                    "Python", "Java", "JavaScript", "C++", "C#", "C", "Go", "Rust",
                    "PHP", "Swift", "Kotlin", "R", "MATLAB", "Scala", "Ruby", "None",
                ],
            ),
            _field(
                "frameworks",
                "Frameworks & Libraries",
                "multiselect",
                description="Select frameworks and libraries you have experience with",
                options=[
                    "React", "Angular", "Vue.js", "Node.js", "Django", "Flask",
                    "Spring Boot", "Express.js", "Laravel", "ASP.NET", "Flutter",
                    "React Native", "TensorFlow", "PyTorch", "None",
                ],
            ),
            _field(
                "databases",
                "Database Experience",
                "multiselect",
                options=[
                    "MySQL", "PostgreSQL", "MongoDB", "Redis", "SQLite",
                    "Oracle", "SQL Server", "Cassandra", "Firebase", "None",
                ],
            ),
            _field(
                "cloudPlatforms",
                "Cloud Platforms",
                "multiselect",
                options=[
                    "AWS", "Supabase", "Microsoft Azure", "Firebase",
                    "Heroku", "DigitalOcean", "Vercel", "Netlify", "None",
                ],
            ),
            _field(
                "toolsAndTech",
                "Tools & Technologies",
                "multiselect",
                options=[
                    "Git/GitHub", "Docker", "Kubernetes", "Jenkins", "Figma",
                    "Adobe Creative Suite", "Tableau", "Power BI", "Excel",
                    "Jira", "Slack", "VS Code", "IntelliJ", "None",
                ],
            ),
        ],
    ),
    QuestionSection(
        id="interests",
        title="Career Interests & Preferences",
        description="What type of work excites you the most?",
        fields=[
            _field(
                "careerInterests",
                "Career Areas of Interest",
                "multiselect",
                required=True,
                description="Select at least 3 areas that interest you",
                options=[
                    "Software Development", "Web Development", "Mobile App Development",
                    "Data Science & Analytics", "Artificial Intelligence/Machine Learning",
                    "Cybersecurity", "Cloud Computing", "DevOps",
                    "Product Management", "Project Management", "Business Analysis",
                    "Digital Marketing", "Content Creation", "Social Media Marketing",
                    "UI/UX Design", "Graphic Design", "Game Development",
                    "Quality Assurance/Testing", "Technical Writing", "Consulting",
                    "Sales & Business Development", "Human Resources", "Finance",
                ],
            ),
            _field(
                "workEnvironment",
                "Preferred Work Environment",
                "select",
                required=True,
                options=[
                    "Early-stage Startup (High risk, high reward)",
                    "Growth-stage Startup (Scaling phase)",
                    "Large Corporation (Established processes)",
                    "Government/Public Sector",
                    "Freelance/Consulting",
                    "Remote Work",
                    "Hybrid Work",
                    "No Preference",
                ],
            ),
            _field(
                "workStyle",
                "Preferred Work Style",
                "select",
                required=True,
                options=[
                    "Individual contributor (Working independently)",
                    "Team collaboration (Working closely with others)",
                    "Leadership role (Managing teams)",
                    "Client-facing (Direct customer interaction)",
                    "Behind-the-scenes (Focus on technical work)",
                    "Mixed approach",
                ],
            ),
            _field(
                "careerGoals",
                "Short-term Career Goals (1-2 years)",
                "textarea",
                required=True,
                placeholder="Describe what you want to achieve in your career in the next 1-2 years...",
            ),
        ],
    ),
    QuestionSection(
        id="experience",
        title="Experience & Background",
        description="Share your experience and achievements",
        fields=[
            _field(
                "internships",
                "Internship & Work Experience",
                "textarea",
                placeholder="Describe any internships, part-time jobs, or work experience you have...",
            ),
            _field(
                "projects",
                "Personal/Academic Projects",
                "textarea",
                required=True,
                placeholder="Describe your key projects, including technologies used and outcomes...",
            ),
            _field(
                "certifications",
                "Certifications & Courses",
                "textarea",
                placeholder="List any relevant certifications, online courses, or training programs...",
            ),
            _field(
                "achievements",
                "Achievements & Awards",
                "textarea",
                placeholder="Mention any academic achievements, competition wins, or recognition...",
            ),
            _field(
                "strengths",
                "Key Strengths",
                "multiselect",
                required=True,
                description="Select your top 5 strengths",
                options=[
                    "Problem Solving", "Analytical Thinking", "Creative Thinking",
                    "Leadership", "Team Collaboration", "Communication",
                    "Time Management", "Adaptability", "Learning Agility",
                    "Technical Writing", "Presentation Skills", "Attention to Detail",
                    "Project Management", "Customer Service", "Innovation",
                ],
            ),
            _field(
                "languages",
                "Languages Known",
                "multiselect",
                required=True,
                options=[
                    "English", "Hindi", "Tamil", "Telugu", "Kannada", "Malayalam",
                    "Bengali", "Marathi", "Gujarati", "Punjabi", "Urdu", "Odia",
                    "French", "German", "Spanish", "Japanese", "Mandarin",
                ],
            ),
        ],
    ),
]


def catalog_fields() -> List[QuestionField]:
    return [field for section in QUESTION_CATALOG for field in section.fields]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def _check_field(field: QuestionField, value: Any) -> Optional[str]:
    if field.type == "number":
        try:
            number = int(value)
        except (TypeError, ValueError):
            return f"{field.label} must be a whole number"
        if field.min is not None and number < field.min:
            return f"{field.label} must be at least {field.min}"
        if field.max is not None and number > field.max:
            return f"{field.label} must be at most {field.max}"
        return None

    if field.type == "multiselect":
        if not isinstance(value, (list, tuple)):
            return f"{field.label} must be a list of options"
        unknown = [item for item in value if item not in field.options]
        if unknown:
            return f"{field.label} has unknown options: {', '.join(map(str, unknown))}"
        if field.name == "careerInterests" and len(value) < MIN_CAREER_INTERESTS:
            return f"Please select at least {MIN_CAREER_INTERESTS} career interests"
        if field.name == "strengths" and len(value) > MAX_STRENGTHS:
            return f"Please select maximum {MAX_STRENGTHS} strengths"
        return None

    if not isinstance(value, str):
        return f"{field.label} must be text"
    if field.type == "select" and value not in field.options:
        return f"{field.label} must be one of the listed options"
    return None


def validate_answers(answers: Mapping[str, Any]) -> ProfileAnswers:
    """Check raw camelCase answers against the catalog and return them typed.

    Every problem is collected before raising, so callers can show all of
    them at once. Fields outside the catalog are ignored.
    """
    errors: Dict[str, str] = {}
    for field in catalog_fields():
        value = answers.get(field.name)
        if _is_blank(value):
            if field.required:
                errors[field.name] = f"{field.label} is required"
            continue
        problem = _check_field(field, value)
        if problem:
            errors[field.name] = problem
    if errors:
        raise AssessmentValidationError(errors)

    known = {field.name for field in catalog_fields()}
    return ProfileAnswers.model_validate(
        {key: value for key, value in answers.items() if key in known and not _is_blank(value)}
    )


def assessment_progress(answers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    answers = answers or {}
    filled = sum(1 for name in PROGRESS_FIELDS if not _is_blank(answers.get(name)))
    percentage = round(filled / len(PROGRESS_FIELDS) * 100)
    return {"percentage": percentage, "isComplete": filled == len(PROGRESS_FIELDS)}


class AssessmentDraftStore:
    """In-progress answers kept under the draft key of a client's local cache."""

    def __init__(self, cache: LocalCache) -> None:
        self._cache = cache

    def load(self) -> Dict[str, Any]:
        draft = self._cache.read_blob(DRAFT_KEY)
        if not isinstance(draft, dict):
            return {}
        return draft

    def save(self, answers: Mapping[str, Any]) -> bool:
        if not answers:
            return False
        self._cache.write_blob(DRAFT_KEY, dict(answers))
        return True

    def clear(self) -> None:
        self._cache.remove_blob(DRAFT_KEY)


class DraftAutosaver:
    """Debounce draft writes so only the last edit inside the window is saved."""

    def __init__(self, store: AssessmentDraftStore, *, delay_seconds: float = 2.0) -> None:
        self._store = store
        self._delay = max(0.0, delay_seconds)
        self._latest: Dict[str, Any] = {}
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, answers: Mapping[str, Any]) -> None:
        self._latest = dict(answers)
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = asyncio.get_running_loop().create_task(self._save_later())

    async def _save_later(self) -> None:
        await asyncio.sleep(self._delay)
        self._store.save(self._latest)
        logger.debug("Autosaved assessment draft with %d fields", len(self._latest))

    async def flush(self) -> None:
        """Write the latest draft now instead of waiting for the timer."""
        self.cancel()
        self._store.save(self._latest)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


__all__ = [
    "AssessmentDraftStore",
    "AssessmentValidationError",
    "DraftAutosaver",
    "QUESTION_CATALOG",
    "QuestionField",
    "QuestionSection",
    "assessment_progress",
    "catalog_fields",
    "validate_answers",
]
