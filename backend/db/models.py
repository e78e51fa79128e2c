import uuid

from sqlalchemy import (
    Column, Integer, Text, Boolean, ForeignKey, Index, Date,
    DateTime, JSON, String,
)
from sqlalchemy.orm import relationship

from db.database import Base
from utils.datetime_utils import utcnow


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    username = Column(Text, unique=True, nullable=False)
    username_normalized = Column(Text, unique=True, nullable=False)
    email = Column(Text, nullable=False)
    email_normalized = Column(Text, unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    full_name = Column(Text, nullable=False)
    role = Column(Text, nullable=False, default="user")  # user | admin
    current_week = Column(Integer, nullable=False, default=1)  # 1-8
    streak = Column(Integer, nullable=False, default=0)
    total_journals = Column(Integer, nullable=False, default=0)
    profile_picture = Column(Text)
    bio = Column(Text)
    phone = Column(Text)
    date_of_birth = Column(Date)
    location = Column(Text)
    occupation = Column(Text)
    goals = Column(Text)
    emergency_contact = Column(Text)
    emergency_phone = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    journals = relationship("Journal", back_populates="user")
    user_challenges = relationship("UserChallenge", back_populates="user")
    user_achievements = relationship("UserAchievement", back_populates="user")
    progress = relationship("UserProgress", back_populates="user")
    task_submissions = relationship(
        "TaskSubmission",
        back_populates="user",
        foreign_keys="TaskSubmission.user_id",
    )
    user_tasks = relationship("UserTask", back_populates="user")


class Week(Base):
    __tablename__ = "weeks"

    id = Column(String(36), primary_key=True, default=new_id)
    week_number = Column(Integer, unique=True, nullable=False)  # 1-8
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    icon = Column(Text, nullable=False)
    color = Column(Text, nullable=False)

    challenges = relationship("Challenge", back_populates="week")


class Challenge(Base):
    __tablename__ = "challenges"

    id = Column(String(36), primary_key=True, default=new_id)
    week_id = Column(String(36), ForeignKey("weeks.id"), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    type = Column(Text, nullable=False)  # daily | weekly
    created_at = Column(DateTime, nullable=False, default=utcnow)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)

    week = relationship("Week", back_populates="challenges")


class UserChallenge(Base):
    __tablename__ = "user_challenges"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    challenge_id = Column(String(36), ForeignKey("challenges.id"), nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime)

    user = relationship("User", back_populates="user_challenges")
    challenge = relationship("Challenge")


class Journal(Base):
    __tablename__ = "journals"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    entry_date = Column(Date, nullable=False)  # calendar day in PROGRAM_TIMEZONE
    achievement = Column(Text)
    challenge = Column(Text)
    gratitude = Column(Text)
    mood = Column(Text)  # great | good | okay | challenging
    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="journals")


class Resource(Base):
    __tablename__ = "resources"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(Text, nullable=False)
    type = Column(Text, nullable=False)  # video | pdf | article
    url = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)


class Announcement(Base):
    __tablename__ = "announcements"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)


class Achievement(Base):
    __tablename__ = "achievements"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    icon = Column(Text, nullable=False)
    criteria = Column(JSON, nullable=False)  # e.g. {"type": "journals", "count": 7}


class UserAchievement(Base):
    __tablename__ = "user_achievements"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    achievement_id = Column(String(36), ForeignKey("achievements.id"), nullable=False)
    unlocked_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="user_achievements")
    achievement = relationship("Achievement")


class UserProgress(Base):
    __tablename__ = "user_progress"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    week_id = Column(String(36), ForeignKey("weeks.id"), nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime)

    user = relationship("User", back_populates="progress")
    week = relationship("Week")


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    week_id = Column(String(36), ForeignKey("weeks.id"), nullable=True)
    due_date = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    assigned_to_all = Column(Boolean, nullable=False, default=False)


class TaskSubmission(Base):
    __tablename__ = "task_submissions"

    id = Column(String(36), primary_key=True, default=new_id)
    task_id = Column(String(36), ForeignKey("tasks.id"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    submitted_at = Column(DateTime, nullable=False, default=utcnow)
    rating = Column(Integer)  # 1-5
    feedback = Column(Text)
    reviewed_at = Column(DateTime)
    reviewed_by = Column(String(36), ForeignKey("users.id"), nullable=True)

    user = relationship("User", back_populates="task_submissions", foreign_keys=[user_id])


class UserTask(Base):
    __tablename__ = "user_tasks"

    id = Column(String(36), primary_key=True, default=new_id)
    task_id = Column(String(36), ForeignKey("tasks.id"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    assigned_at = Column(DateTime, nullable=False, default=utcnow)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime)

    user = relationship("User", back_populates="user_tasks")


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=new_id)
    sender_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    recipient_id = Column(String(36), ForeignKey("users.id"), nullable=True)  # null for group messages
    subject = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    sent_at = Column(DateTime, nullable=False, default=utcnow)
    read_at = Column(DateTime)
    is_group_message = Column(Boolean, nullable=False, default=False)
    group_scope = Column(Text)  # all | week
    group_week_number = Column(Integer)


Index("idx_user_challenges_user_challenge", UserChallenge.user_id, UserChallenge.challenge_id, unique=True)
Index("idx_journals_user_day", Journal.user_id, Journal.entry_date, unique=True)
Index("idx_journals_created", Journal.created_at)
Index("idx_task_submissions_task_user", TaskSubmission.task_id, TaskSubmission.user_id, unique=True)
Index("idx_user_tasks_task_user", UserTask.task_id, UserTask.user_id, unique=True)
Index("idx_user_progress_user_week", UserProgress.user_id, UserProgress.week_id, unique=True)
Index("idx_user_achievements_user_achievement", UserAchievement.user_id, UserAchievement.achievement_id, unique=True)
Index("idx_messages_recipient_sent", Message.recipient_id, Message.sent_at)
Index("idx_challenges_week", Challenge.week_id)
