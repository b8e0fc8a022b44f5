from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from patient_portal.schemas.appointment import (
    Appointment,
    AppointmentStats,
    AppointmentStatus,
    BookingRequest,
    BookingResponse,
    MutationResponse,
    RescheduleRequest,
)
from patient_portal.schemas.availability import DaySchedule, TimeSlot
from patient_portal.schemas.directory import Branch, Department, Doctor, InitialBookingData
from patient_portal.services.exceptions import DownstreamServiceError, SlotConflictError

# Python weekday numbers: Monday is 0, Sunday is 6.
SUNDAY_TO_THURSDAY = (6, 0, 1, 2, 3)
MONDAY_TO_FRIDAY = (0, 1, 2, 3, 4)


class BranchRecord:
    def __init__(self, *, branch_id: int, name: str, region: str, address: str) -> None:
        self.branch_id = int(branch_id)
        self.name = name
        self.region = region
        self.address = address


class DepartmentRecord:
    def __init__(self, *, department_id: int, name: str, icon: str | None = None) -> None:
        self.department_id = int(department_id)
        self.name = name
        self.icon = icon


class DoctorRecord:
    def __init__(
        self,
        *,
        doctor_id: int,
        name: str,
        department_id: int,
        branch_id: int,
        specialization: str,
        weekdays: Iterable[int],
        start: str,
        end: str,
        slot_minutes: int = 30,
        is_active: bool = True,
    ) -> None:
        self.doctor_id = int(doctor_id)
        self.name = name
        self.department_id = int(department_id)
        self.branch_id = int(branch_id)
        self.specialization = specialization
        self.weekdays = frozenset(weekdays)
        self.start = time.fromisoformat(start)
        self.end = time.fromisoformat(end)
        self.slot_minutes = slot_minutes
        self.is_active = is_active

    def practises_on(self, day: date) -> bool:
        return self.is_active and day.weekday() in self.weekdays

    def slot_times(self) -> List[str]:
        times: List[str] = []
        cursor = datetime.combine(date.min, self.start)
        end = datetime.combine(date.min, self.end)
        step = timedelta(minutes=self.slot_minutes)
        while cursor + step <= end:
            times.append(cursor.strftime("%H:%M"))
            cursor += step
        return times


class DirectoryRepository:
    def __init__(self) -> None:
        self._branches: Dict[int, BranchRecord] = {}
        self._departments: Dict[int, DepartmentRecord] = {}
        self._doctors: Dict[int, DoctorRecord] = {}
        self._seed_directory()

    def _seed_directory(self) -> None:
        for record in [
            BranchRecord(branch_id=1, name="Central Hospital", region="Downtown", address="12 King Road"),
            BranchRecord(branch_id=2, name="North Clinic", region="North District", address="48 Palm Avenue"),
            BranchRecord(branch_id=3, name="Harbour Outpatient Centre", region="Harbour", address="3 Quay Street"),
        ]:
            self._branches[record.branch_id] = record

        for record in [
            DepartmentRecord(department_id=10, name="Cardiology", icon="heart"),
            DepartmentRecord(department_id=11, name="Dermatology", icon="skin"),
            DepartmentRecord(department_id=12, name="Pediatrics", icon="child"),
            DepartmentRecord(department_id=13, name="Orthopedics", icon="bone"),
        ]:
            self._departments[record.department_id] = record

        for record in [
            DoctorRecord(
                doctor_id=100,
                name="Dr. Sara Haddad",
                department_id=10,
                branch_id=1,
                specialization="Interventional Cardiology",
                weekdays=SUNDAY_TO_THURSDAY,
                start="09:00",
                end="12:00",
            ),
            DoctorRecord(
                doctor_id=101,
                name="Dr. Omar Khalil",
                department_id=11,
                branch_id=1,
                specialization="Clinical Dermatology",
                weekdays=(0, 2),
                start="16:00",
                end="18:00",
            ),
            DoctorRecord(
                doctor_id=102,
                name="Dr. Lina Farouk",
                department_id=12,
                branch_id=2,
                specialization="General Pediatrics",
                weekdays=MONDAY_TO_FRIDAY,
                start="08:30",
                end="11:30",
                slot_minutes=20,
            ),
            DoctorRecord(
                doctor_id=103,
                name="Dr. Yusuf Nasser",
                department_id=10,
                branch_id=2,
                specialization="Electrophysiology",
                weekdays=(1, 3),
                start="13:00",
                end="15:00",
            ),
            DoctorRecord(
                doctor_id=104,
                name="Dr. Huda Mansour",
                department_id=13,
                branch_id=1,
                specialization="Sports Medicine",
                weekdays=SUNDAY_TO_THURSDAY,
                start="10:00",
                end="13:00",
                is_active=False,
            ),
        ]:
            self._doctors[record.doctor_id] = record

    def get_branch(self, branch_id: int) -> Optional[BranchRecord]:
        return self._branches.get(int(branch_id))

    def get_department(self, department_id: int) -> Optional[DepartmentRecord]:
        return self._departments.get(int(department_id))

    def get_doctor(self, doctor_id: int) -> Optional[DoctorRecord]:
        return self._doctors.get(int(doctor_id))

    def iter_doctors(self) -> Iterable[DoctorRecord]:
        return self._doctors.values()

    @staticmethod
    def _doctor_summary(record: DoctorRecord) -> Doctor:
        return Doctor(
            id=record.doctor_id,
            name=record.name,
            department_id=record.department_id,
            branch_id=record.branch_id,
            specialization=record.specialization,
            is_active=record.is_active,
        )

    def branches(self) -> List[Branch]:
        return [
            Branch(id=record.branch_id, name=record.name, region=record.region, address=record.address)
            for record in sorted(self._branches.values(), key=lambda item: item.name)
        ]

    def doctors(
        self,
        *,
        branch_id: int | None = None,
        department_id: int | None = None,
        active: bool = True,
    ) -> List[Doctor]:
        matches = [
            record
            for record in self._doctors.values()
            if (not active or record.is_active)
            and (branch_id is None or record.branch_id == branch_id)
            and (department_id is None or record.department_id == department_id)
        ]
        matches.sort(key=lambda record: record.name)
        return [self._doctor_summary(record) for record in matches]

    def departments(self, *, with_doctors: bool = False) -> List[Department]:
        items: List[Department] = []
        for record in sorted(self._departments.values(), key=lambda item: item.name):
            doctors = self.doctors(department_id=record.department_id) if with_doctors else None
            items.append(
                Department(id=record.department_id, name=record.name, icon=record.icon, doctors=doctors)
            )
        return items

    def initial_data(self) -> InitialBookingData:
        return InitialBookingData(
            branches=self.branches(),
            departments=self.departments(),
            doctors=self.doctors(),
        )


class AppointmentRepository:
    def __init__(
        self,
        directory: DirectoryRepository,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._directory = directory
        self._clock = clock or datetime.now
        self._counter = itertools.count(5001)
        self._appointments: Dict[int, Dict[str, object]] = {}
        self._seed_defaults()

    def _next_id(self) -> int:
        return next(self._counter)

    def _seed_defaults(self) -> None:
        today = self._clock().date()
        cardiologist = self._directory.get_doctor(100)
        pediatrician = self._directory.get_doctor(102)
        if not cardiologist or not pediatrician:
            return

        upcoming_day = _next_practising_day(cardiologist, today + timedelta(days=3))
        past_day = today - timedelta(days=10)
        seeds = [
            {
                "doctor_id": cardiologist.doctor_id,
                "appointment_date": upcoming_day.isoformat(),
                "appointment_time": "09:30:00",
                "status": "booked",
                "reason": "Follow-up",
            },
            {
                "doctor_id": pediatrician.doctor_id,
                "appointment_date": past_day.isoformat(),
                "appointment_time": "08:50:00",
                "status": "booked",
                "reason": "Vaccination",
            },
            {
                "doctor_id": cardiologist.doctor_id,
                "appointment_date": (past_day - timedelta(days=7)).isoformat(),
                "appointment_time": "10:00:00",
                "status": AppointmentStatus.CANCELLED.value,
                "cancellation_reason": "Schedule conflict",
            },
        ]
        for seed in seeds:
            doctor = self._directory.get_doctor(int(seed["doctor_id"]))
            record = {
                "id": self._next_id(),
                "branch_id": doctor.branch_id,
                "department_id": doctor.department_id,
                "reason": None,
                "notes": None,
                "cancellation_reason": None,
            }
            record.update(seed)
            self._appointments[int(record["id"])] = record

    def _status_of(self, record: Dict[str, object]) -> str:
        if record["status"] == AppointmentStatus.CANCELLED.value:
            return AppointmentStatus.CANCELLED.value
        if self._starts_at(record) < self._clock():
            return AppointmentStatus.PAST.value
        return AppointmentStatus.UPCOMING.value

    @staticmethod
    def _starts_at(record: Dict[str, object]) -> datetime:
        return datetime.fromisoformat(f"{record['appointment_date']}T{record['appointment_time']}")

    def _to_appointment(self, record: Dict[str, object]) -> Appointment:
        doctor = self._directory.get_doctor(int(record["doctor_id"]))
        branch = self._directory.get_branch(int(record["branch_id"]))
        department = self._directory.get_department(int(record["department_id"]))
        return Appointment(
            id=int(record["id"]),
            doctor_id=int(record["doctor_id"]),
            doctor_name=doctor.name if doctor else None,
            branch=branch.name if branch else None,
            department=department.name if department else None,
            department_icon=department.icon if department else None,
            appointment_date=str(record["appointment_date"]),
            appointment_time=str(record["appointment_time"]),
            appointment_datetime=self._starts_at(record).isoformat(),
            status=self._status_of(record),
            cancellation_reason=record.get("cancellation_reason"),
        )

    def _require(self, appointment_id: int) -> Dict[str, object]:
        record = self._appointments.get(int(appointment_id))
        if record is None:
            raise DownstreamServiceError("Appointment not found", status_code=404)
        return record

    def is_taken(
        self,
        doctor_id: int,
        appointment_date: str,
        appointment_time: str,
        *,
        exclude_id: int | None = None,
    ) -> bool:
        wanted = appointment_time[:5]
        for record in self._appointments.values():
            if record["id"] == exclude_id or record["status"] == AppointmentStatus.CANCELLED.value:
                continue
            if (
                record["doctor_id"] == doctor_id
                and record["appointment_date"] == appointment_date
                and str(record["appointment_time"])[:5] == wanted
            ):
                return True
        return False

    def _ensure_slot_open(
        self,
        doctor_id: int,
        appointment_date: str,
        appointment_time: str,
        *,
        exclude_id: int | None = None,
    ) -> None:
        doctor = self._directory.get_doctor(doctor_id)
        if doctor is None:
            raise DownstreamServiceError("Doctor not found", status_code=404)
        day = date.fromisoformat(appointment_date)
        starts_at = datetime.fromisoformat(f"{appointment_date}T{appointment_time}")
        if (
            not doctor.practises_on(day)
            or appointment_time[:5] not in doctor.slot_times()
            or starts_at < self._clock()
            or self.is_taken(doctor_id, appointment_date, appointment_time, exclude_id=exclude_id)
        ):
            raise SlotConflictError()

    async def book(self, request: BookingRequest) -> BookingResponse:
        doctor = self._directory.get_doctor(request.doctor_id)
        if doctor is None or doctor.branch_id != request.branch_id or doctor.department_id != request.department_id:
            raise DownstreamServiceError(
                "Doctor does not practise in the selected branch and department",
                status_code=422,
            )
        self._ensure_slot_open(request.doctor_id, request.appointment_date, request.appointment_time)

        appointment_id = self._next_id()
        self._appointments[appointment_id] = {
            "id": appointment_id,
            "doctor_id": request.doctor_id,
            "branch_id": request.branch_id,
            "department_id": request.department_id,
            "appointment_date": request.appointment_date,
            "appointment_time": request.appointment_time,
            "status": "booked",
            "reason": request.reason,
            "notes": request.notes,
            "cancellation_reason": None,
        }
        return BookingResponse(
            status=AppointmentStatus.UPCOMING.value,
            appointment_id=appointment_id,
            appointment_date=request.appointment_date,
            appointment_time=request.appointment_time,
            message="Appointment booked successfully",
        )

    async def reschedule(self, appointment_id: int, request: RescheduleRequest) -> MutationResponse:
        record = self._require(appointment_id)
        if self._status_of(record) != AppointmentStatus.UPCOMING.value:
            raise DownstreamServiceError("Only upcoming appointments can be rescheduled", status_code=422)
        self._ensure_slot_open(
            int(record["doctor_id"]),
            request.appointment_date,
            request.appointment_time,
            exclude_id=int(record["id"]),
        )
        record["appointment_date"] = request.appointment_date
        record["appointment_time"] = request.appointment_time
        return MutationResponse(
            status=AppointmentStatus.UPCOMING.value,
            appointment_id=int(record["id"]),
            message="Appointment rescheduled successfully",
        )

    async def cancel(self, appointment_id: int, reason: str) -> MutationResponse:
        record = self._require(appointment_id)
        if record["status"] == AppointmentStatus.CANCELLED.value:
            raise DownstreamServiceError("Already cancelled", status_code=422)
        if self._status_of(record) == AppointmentStatus.PAST.value:
            raise DownstreamServiceError("Past appointments cannot be cancelled", status_code=422)
        record["status"] = AppointmentStatus.CANCELLED.value
        record["cancellation_reason"] = reason
        return MutationResponse(
            status=AppointmentStatus.CANCELLED.value,
            appointment_id=int(record["id"]),
            message="Appointment cancelled successfully",
        )

    async def list_upcoming(self) -> List[Appointment]:
        items = [
            self._to_appointment(record)
            for record in self._appointments.values()
            if self._status_of(record) == AppointmentStatus.UPCOMING.value
        ]
        items.sort(key=lambda item: item.appointment_datetime or "")
        return items

    async def list_past(self) -> List[Appointment]:
        items = [
            self._to_appointment(record)
            for record in self._appointments.values()
            if self._status_of(record) != AppointmentStatus.UPCOMING.value
        ]
        items.sort(key=lambda item: item.appointment_datetime or "", reverse=True)
        return items

    async def stats(self) -> AppointmentStats:
        upcoming = sum(
            1
            for record in self._appointments.values()
            if self._status_of(record) == AppointmentStatus.UPCOMING.value
        )
        return AppointmentStats(upcoming=upcoming, past=len(self._appointments) - upcoming)

    async def get(self, appointment_id: int) -> Optional[Dict[str, object]]:
        appointment = self._appointments.get(int(appointment_id))
        return dict(appointment) if appointment is not None else None

    async def delete(self, appointment_id: int) -> bool:
        return self._appointments.pop(int(appointment_id), None) is not None

    def records(self) -> List[Dict[str, object]]:
        return [dict(record) for record in self._appointments.values()]


class ScheduleRepository:
    """Generates per-day slot lists from practising hours and existing bookings."""

    def __init__(
        self,
        directory: DirectoryRepository,
        appointments: AppointmentRepository,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._directory = directory
        self._appointments = appointments
        self._clock = clock or datetime.now

    async def schedule_range(self, doctor_id: int, start_date: date, end_date: date) -> List[DaySchedule]:
        doctor = self._directory.get_doctor(doctor_id)
        if doctor is None:
            raise DownstreamServiceError("Doctor not found", status_code=404)

        now = self._clock()
        schedule: List[DaySchedule] = []
        day = start_date
        while day <= end_date:
            slots: List[TimeSlot] = []
            if doctor.practises_on(day):
                for slot_time in doctor.slot_times():
                    starts_at = datetime.combine(day, time.fromisoformat(slot_time))
                    taken = self._appointments.is_taken(doctor.doctor_id, day.isoformat(), slot_time)
                    slots.append(TimeSlot(time=slot_time, available=starts_at >= now and not taken))
            schedule.append(DaySchedule(date=day.isoformat(), slots=slots))
            day += timedelta(days=1)
        return schedule


def _next_practising_day(doctor: DoctorRecord, start: date) -> date:
    day = start
    for _ in range(7):
        if doctor.practises_on(day):
            return day
        day += timedelta(days=1)
    return start


@dataclass
class MockDataStore:
    directory: DirectoryRepository
    appointments: AppointmentRepository
    schedules: ScheduleRepository


_mock_store: Optional[MockDataStore] = None


def get_mock_store() -> MockDataStore:
    global _mock_store
    if _mock_store is None:
        directory = DirectoryRepository()
        appointments = AppointmentRepository(directory)
        schedules = ScheduleRepository(directory, appointments)
        _mock_store = MockDataStore(
            directory=directory,
            appointments=appointments,
            schedules=schedules,
        )
    return _mock_store


def reset_mock_store() -> None:
    global _mock_store
    _mock_store = None
