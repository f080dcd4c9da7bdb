import enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .encryption import EncryptedText


class UserRole(str, enum.Enum):
    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"
    ADMIN = "ADMIN"


class AppointmentStatus(str, enum.Enum):
    AWAITING_ACCEPTANCE = "AWAITING_ACCEPTANCE"
    REJECTED = "REJECTED"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class AppointmentType(str, enum.Enum):
    ONLINE = "ONLINE"
    IN_PERSON = "IN_PERSON"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class MeetingStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    STARTED = "STARTED"
    ENDED = "ENDED"
    CANCELLED = "CANCELLED"


class DocumentType(str, enum.Enum):
    LAB_REPORT = "LAB_REPORT"
    PRESCRIPTION = "PRESCRIPTION"
    SCAN = "SCAN"
    OTHER = "OTHER"


class NotificationType(str, enum.Enum):
    APPOINTMENT_BOOKED = "APPOINTMENT_BOOKED"
    APPOINTMENT_ACCEPTED = "APPOINTMENT_ACCEPTED"
    APPOINTMENT_REJECTED = "APPOINTMENT_REJECTED"
    APPOINTMENT_CANCELLED = "APPOINTMENT_CANCELLED"
    APPOINTMENT_RESCHEDULED = "APPOINTMENT_RESCHEDULED"
    APPOINTMENT_COMPLETED = "APPOINTMENT_COMPLETED"
    APPOINTMENT_REMINDER = "APPOINTMENT_REMINDER"
    MEETING_LINK_READY = "MEETING_LINK_READY"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    PAYMENT_REFUNDED = "PAYMENT_REFUNDED"
    DOCTOR_VERIFIED = "DOCTOR_VERIFIED"
    DOCTOR_REJECTED = "DOCTOR_REJECTED"
    SYSTEM = "SYSTEM"


class NotificationChannel(str, enum.Enum):
    EMAIL = "EMAIL"
    SMS = "SMS"
    IN_APP = "IN_APP"


class NotificationStatus(str, enum.Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"


def _enum(enum_cls):
    """Store enums as plain strings so SQLite and Postgres behave the same"""
    return Enum(enum_cls, native_enum=False, length=40)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(_enum(UserRole), nullable=False, index=True)
    is_verified = Column(Boolean, default=False, nullable=False)  # Email verification status
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    patient_profile = relationship(
        "PatientProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    doctor_profile = relationship(
        "DoctorProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    admin_profile = relationship(
        "AdminProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    notification_preference = relationship(
        "NotificationPreference", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    notifications = relationship(
        "Notification", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def profile(self):
        if self.role == UserRole.PATIENT:
            return self.patient_profile
        if self.role == UserRole.DOCTOR:
            return self.doctor_profile
        return self.admin_profile

    @property
    def display_name(self) -> str:
        profile = self.profile
        return profile.name if profile else self.email


class PatientProfile(Base):
    __tablename__ = "patient_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    age = Column(Integer, nullable=False)
    gender = Column(String(10), nullable=False)  # male, female, other
    phone = Column(String(20), nullable=False)  # E.164
    address = Column(String(500), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="patient_profile")
    appointments = relationship("Appointment", back_populates="patient")
    documents = relationship(
        "MedicalDocument", back_populates="patient", cascade="all, delete-orphan"
    )


class DoctorProfile(Base):
    __tablename__ = "doctor_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    name = Column(String(100), nullable=False, index=True)
    profile_picture = Column(String(500), nullable=True)  # R2 key
    medical_license_number = Column(String(50), unique=True, nullable=False)
    qualifications = Column(JSON, nullable=False, default=list)
    years_of_experience = Column(Integer, nullable=False, default=0)
    specializations = Column(JSON, nullable=False, default=list)
    phone = Column(String(20), nullable=False)
    clinic_name = Column(String(200), nullable=False)
    clinic_address = Column(String(500), nullable=False)
    clinic_latitude = Column(Float, nullable=True)  # Filled by geocoding
    clinic_longitude = Column(Float, nullable=True)
    consultation_fee = Column(Float, nullable=False)  # USD
    is_accepting_patients = Column(Boolean, default=True, nullable=False)
    license_verified = Column(Boolean, default=False, nullable=False, index=True)
    rating = Column(Float, default=0.0, nullable=False)  # Average of reviews
    total_reviews = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="doctor_profile")
    appointments = relationship("Appointment", back_populates="doctor")
    reviews = relationship("Review", back_populates="doctor")


class AdminProfile(Base):
    __tablename__ = "admin_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="admin_profile")


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patient_profiles.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctor_profiles.id"), nullable=False, index=True)
    scheduled_date_time = Column(DateTime, nullable=False, index=True)  # UTC
    type = Column(_enum(AppointmentType), nullable=False)
    status = Column(
        _enum(AppointmentStatus),
        nullable=False,
        default=AppointmentStatus.AWAITING_ACCEPTANCE,
        index=True,
    )
    payment_status = Column(_enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    patient = relationship("PatientProfile", back_populates="appointments")
    doctor = relationship("DoctorProfile", back_populates="appointments")
    payment = relationship(
        "Payment", back_populates="appointment", uselist=False, cascade="all, delete-orphan"
    )
    zoom_meeting = relationship(
        "ZoomMeeting", back_populates="appointment", uselist=False, cascade="all, delete-orphan"
    )
    review = relationship("Review", back_populates="appointment", uselist=False)


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), unique=True, nullable=False)
    amount = Column(Float, nullable=False)  # USD
    currency = Column(String(3), default="USD", nullable=False)
    status = Column(_enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING, index=True)
    provider_payment_id = Column(String(255), nullable=True, index=True)  # Dodo payment id
    checkout_session_id = Column(String(255), nullable=True)
    checkout_url = Column(String(1000), nullable=True)
    processed_at = Column(DateTime, nullable=True)
    refunded_at = Column(DateTime, nullable=True)
    refund_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    appointment = relationship("Appointment", back_populates="payment")


class ZoomMeeting(Base):
    __tablename__ = "zoom_meetings"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), unique=True, nullable=False)
    zoom_meeting_id = Column(String(64), unique=True, nullable=False, index=True)
    topic = Column(String(300), nullable=False)
    start_time = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    host_url = Column(EncryptedText, nullable=False)  # start_url carries a host token
    join_url = Column(String(1000), nullable=False)
    password = Column(String(32), nullable=True)
    status = Column(_enum(MeetingStatus), nullable=False, default=MeetingStatus.SCHEDULED)
    host_email = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    appointment = relationship("Appointment", back_populates="zoom_meeting")


class MedicalDocument(Base):
    __tablename__ = "medical_documents"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patient_profiles.id"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_url = Column(String(500), nullable=False)  # R2 key
    file_type = Column(String(100), nullable=False)  # MIME type
    file_size = Column(Integer, nullable=False)  # bytes
    document_type = Column(_enum(DocumentType), nullable=False, default=DocumentType.OTHER)
    description = Column(EncryptedText, nullable=True)
    uploaded_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    patient = relationship("PatientProfile", back_populates="documents")


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), unique=True, nullable=False)
    patient_id = Column(Integer, ForeignKey("patient_profiles.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctor_profiles.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)  # 1-5
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)

    appointment = relationship("Appointment", back_populates="review")
    patient = relationship("PatientProfile")
    doctor = relationship("DoctorProfile", back_populates="reviews")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(_enum(NotificationType), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    channels = Column(JSON, nullable=False, default=list)  # list of NotificationChannel values
    status = Column(_enum(NotificationStatus), nullable=False, default=NotificationStatus.PENDING)
    scheduled_at = Column(DateTime, nullable=True, index=True)
    sent_at = Column(DateTime, nullable=True)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)

    user = relationship("User", back_populates="notifications")


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    email_enabled = Column(Boolean, default=True, nullable=False)
    sms_enabled = Column(Boolean, default=True, nullable=False)
    in_app_enabled = Column(Boolean, default=True, nullable=False)
    appointment_reminders = Column(Boolean, default=True, nullable=False)
    appointment_updates = Column(Boolean, default=True, nullable=False)
    payment_notifications = Column(Boolean, default=True, nullable=False)
    marketing_emails = Column(Boolean, default=False, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="notification_preference")


class ScheduledJob(Base):
    __tablename__ = "scheduled_jobs"

    id = Column(Integer, primary_key=True, index=True)
    job_type = Column(String(50), nullable=False, index=True)  # appointment_reminder
    entity_id = Column(Integer, nullable=False, index=True)  # appointment id
    scheduled_at = Column(DateTime, nullable=False, index=True)
    payload = Column(JSON, nullable=False, default=dict)
    status = Column(String(20), nullable=False, default="pending")  # pending, completed, failed, cancelled
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class AdminActivityLog(Base):
    __tablename__ = "admin_activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    admin_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    action = Column(String(100), nullable=False)
    target_type = Column(String(50), nullable=False)  # user, doctor, review, appointment
    target_id = Column(Integer, nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)
