"""Test data builders and auth helpers"""

from datetime import datetime
from itertools import count

from app.models import (
    AdminProfile,
    Appointment,
    AppointmentStatus,
    AppointmentType,
    DoctorProfile,
    NotificationPreference,
    PatientProfile,
    Payment,
    PaymentStatus,
    User,
    UserRole,
)
from app.security_utils import create_token_pair, hash_password_bcrypt

# Monday 10:00 UTC; Tuesday 14:00 is inside the 24-48h booking window
NOW = datetime(2026, 10, 19, 10, 0, 0)
BOOKABLE = datetime(2026, 10, 20, 14, 0, 0)

PASSWORD = "Str0ng!Passw0rd"

_sequence = count(1)


def _user(db, role: UserRole, email: str = None, is_verified: bool = True, is_active: bool = True) -> User:
    n = next(_sequence)
    user = User(
        email=email or f"{role.value.lower()}{n}@example.com",
        hashed_password=hash_password_bcrypt(PASSWORD),
        role=role,
        is_verified=is_verified,
        is_active=is_active,
    )
    db.add(user)
    db.flush()
    db.add(NotificationPreference(user_id=user.id))
    return user


def make_patient(db, name: str = "Jane Patient", email: str = None, **kwargs) -> User:
    user = _user(db, UserRole.PATIENT, email, **kwargs)
    db.add(
        PatientProfile(
            user_id=user.id,
            name=name,
            age=34,
            gender="female",
            phone="+14155550100",
            address="1 Market St, San Francisco, CA",
        )
    )
    db.commit()
    db.refresh(user)
    return user


def make_doctor(
    db,
    name: str = "Alex Smith",
    email: str = None,
    verified: bool = True,
    specializations=None,
    latitude: float = None,
    longitude: float = None,
    fee: float = 80.0,
    experience: int = 8,
    accepting: bool = True,
) -> User:
    user = _user(db, UserRole.DOCTOR, email)
    db.add(
        DoctorProfile(
            user_id=user.id,
            name=name,
            medical_license_number=f"LIC-{user.id:05d}",
            qualifications=["MBBS"],
            years_of_experience=experience,
            specializations=specializations or ["General Practice"],
            phone="+14155550111",
            clinic_name="Downtown Clinic",
            clinic_address="500 Mission St, San Francisco, CA",
            clinic_latitude=latitude,
            clinic_longitude=longitude,
            consultation_fee=fee,
            is_accepting_patients=accepting,
            license_verified=verified,
        )
    )
    db.commit()
    db.refresh(user)
    return user


def make_admin(db, name: str = "Ada Admin", email: str = None) -> User:
    user = _user(db, UserRole.ADMIN, email)
    db.add(AdminProfile(user_id=user.id, name=name, phone="+14155550122"))
    db.commit()
    db.refresh(user)
    return user


def make_appointment(
    db,
    patient: User,
    doctor: User,
    scheduled: datetime = BOOKABLE,
    status: AppointmentStatus = AppointmentStatus.AWAITING_ACCEPTANCE,
    type: AppointmentType = AppointmentType.IN_PERSON,
) -> Appointment:
    appointment = Appointment(
        patient_id=patient.patient_profile.id,
        doctor_id=doctor.doctor_profile.id,
        scheduled_date_time=scheduled,
        type=type,
        status=status,
        payment_status=PaymentStatus.PENDING,
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment


def make_payment(db, appointment: Appointment, status: PaymentStatus = PaymentStatus.PENDING, **kwargs) -> Payment:
    payment = Payment(
        appointment_id=appointment.id,
        amount=kwargs.pop("amount", 80.0),
        currency="USD",
        status=status,
        **kwargs,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def auth_headers(user: User) -> dict:
    tokens = create_token_pair(user.id, user.email, user.role.value)
    return {"Authorization": f"Bearer {tokens['access_token']}"}
