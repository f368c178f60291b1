from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum

# Sponsor Model
class Sponsor(BaseModel):
    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_active: bool = Field(default=False)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

# Trainee Model
class Trainee(BaseModel):
    id: Optional[str] = None
    trainee_id: Optional[str] = None  # Firebase uid
    tag_number: str  # TRN{year}{NNNN}
    first_name: str
    surname: str
    middle_name: Optional[str] = None
    email: str
    phone: Optional[str] = None
    gender: Optional[str] = None  # male, female
    date_of_birth: Optional[str] = None
    state: Optional[str] = None
    lga: Optional[str] = None
    nationality: str = Field(default="Nigerian")
    sponsor_id: str
    room_number: Optional[str] = None
    lecture_venue: Optional[str] = None
    is_active: bool = Field(default=True)
    email_verified: bool = Field(default=False)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

# Generated ID Models
class GeneratedIdType(str, Enum):
    STAFF = "staff"
    RESOURCE_PERSON = "resource_person"

class GeneratedIdStatus(str, Enum):
    AVAILABLE = "available"
    ASSIGNED = "assigned"
    ACTIVATED = "activated"
    DEACTIVATED = "deactivated"

class GeneratedId(BaseModel):
    id: str  # ST-0C0S0S1, RP-0C0S0S1
    type: GeneratedIdType
    status: GeneratedIdStatus = Field(default=GeneratedIdStatus.AVAILABLE)
    assigned_to: Optional[str] = None  # email
    assigned_at: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    freed_at: Optional[datetime] = None
    freed_reason: Optional[str] = None
    last_assigned_to: Optional[str] = None
    last_assigned_at: Optional[datetime] = None
    usage_count: int = Field(default=0)
    deactivated_at: Optional[datetime] = None
    deactivation_reason: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

# Content Models
class Content(BaseModel):
    id: Optional[str] = None
    title: str
    description: Optional[str] = None
    type: str = Field(default="video")  # video, quiz, assignment
    video_id: Optional[str] = None
    file_id: Optional[str] = None
    sponsor_id: Optional[str] = None
    order_index: int = Field(default=0)
    is_active: bool = Field(default=True)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class TraineeProgress(BaseModel):
    id: Optional[str] = None
    trainee_id: str
    content_id: str
    status: str = Field(default="not_started")  # not_started, in_progress, completed
    progress: int = Field(default=0, ge=0, le=100)
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

# Announcement Models
class Announcement(BaseModel):
    id: Optional[str] = None
    title: str
    message: str
    author: str = Field(default="Admin")
    sponsor_id: Optional[str] = None  # None = visible to every sponsor
    is_active: bool = Field(default=True)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class AnnouncementReply(BaseModel):
    id: Optional[str] = None
    announcement_id: str
    message: str
    from_name: str
    from_id: str
    from_role: str  # admin, trainee
    reply_to_id: Optional[str] = None
    created_at: Optional[datetime] = None

# Messaging Models
class Message(BaseModel):
    id: Optional[str] = None
    from_id: str
    from_name: str
    from_email: Optional[str] = None
    from_tag_number: Optional[str] = None
    from_role: Optional[str] = None
    to_id: str
    to_name: Optional[str] = None
    to_email: Optional[str] = None
    subject: str
    message: str
    is_read: bool = Field(default=False)
    message_type: str  # trainee_to_rp, rp_to_trainee, admin_broadcast
    priority: str = Field(default="normal")  # low, normal, high, urgent
    sponsor_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class Notification(BaseModel):
    id: Optional[str] = None
    user_id: str
    type: str  # admin_reply, announcement, message
    title: str
    message: str
    announcement_id: Optional[str] = None
    reply_id: Optional[str] = None
    message_id: Optional[str] = None
    from_id: Optional[str] = None
    from_name: Optional[str] = None
    is_read: bool = Field(default=False)
    created_at: Optional[datetime] = None

# CBT Models
class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    FILL_BLANK = "fill_blank"

class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    GRADED = "graded"

class CbtQuestion(BaseModel):
    id: Optional[str] = None
    exam_id: Optional[str] = None  # bound to one exam, or part of the shared bank
    subject: Optional[str] = None
    topic: Optional[str] = None
    question: str
    question_type: QuestionType = Field(default=QuestionType.MULTIPLE_CHOICE)
    options: List[str] = Field(default_factory=list)
    correct_answer: str
    points: int = Field(default=1, ge=0)
    order_index: int = Field(default=0)
    difficulty: str = Field(default="medium")  # easy, medium, hard
    is_active: bool = Field(default=True)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class CbtExam(BaseModel):
    id: Optional[str] = None
    title: str
    description: Optional[str] = None
    duration: int = Field(..., ge=1)  # minutes
    total_questions: int = Field(default=0, ge=0)
    passing_score: int = Field(default=50, ge=0, le=100)
    subjects: List[str] = Field(default_factory=list)
    randomize_questions: bool = Field(default=True)
    show_results: bool = Field(default=True)
    sponsor_id: Optional[str] = None
    is_active: bool = Field(default=True)
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class CbtExamAttempt(BaseModel):
    id: Optional[str] = None
    exam_id: str
    trainee_id: str
    trainee_name: Optional[str] = None
    trainee_email: Optional[str] = None
    question_ids: List[str] = Field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    time_spent: int = Field(default=0)  # seconds
    score: int = Field(default=0)  # percentage
    total_questions: int = Field(default=0)
    correct_answers: int = Field(default=0)
    wrong_answers: int = Field(default=0)
    unanswered: int = Field(default=0)
    points_earned: int = Field(default=0)
    points_possible: int = Field(default=0)
    is_passed: bool = Field(default=False)
    rating: Optional[str] = None
    answers: Dict[str, str] = Field(default_factory=dict)
    status: AttemptStatus = Field(default=AttemptStatus.IN_PROGRESS)
    graded_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

# Certificate Model
class Certificate(BaseModel):
    id: str  # CERT-XXXXXXXX-XXXXXX
    trainee_id: str
    trainee_name: str
    tag_number: Optional[str] = None
    sponsor_id: Optional[str] = None
    title: str
    exam_attempt_id: Optional[str] = None
    score: Optional[int] = None
    issued_by: str
    issued_at: Optional[datetime] = None
    is_revoked: bool = Field(default=False)
    revoked_reason: Optional[str] = None
    revoked_at: Optional[datetime] = None

# System Setting Model
class SystemSetting(BaseModel):
    key: str
    value: Any = None
    description: Optional[str] = None
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None
