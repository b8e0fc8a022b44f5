"""Branch → department → doctor cascade used for browsing and booking.

:class:`FilterChain` is an immutable value: each transition returns a new
chain and never touches the network. :class:`FilterChainController` does the
fetching and only applies the response belonging to the latest selection.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict

from patient_portal.schemas.directory import Branch, Department, Doctor, FilterStateResponse
from patient_portal.services.directory import DirectoryService
from patient_portal.services.exceptions import ServiceError, ValidationGateError
from patient_portal.services.requests import RequestSequence

logger = logging.getLogger(__name__)


def departments_with_doctors(
    departments: Iterable[Department], doctors: Iterable[Doctor]
) -> tuple[Department, ...]:
    department_ids = {doctor.department_id for doctor in doctors}
    return tuple(department for department in departments if department.id in department_ids)


class FilterChain(BaseModel):
    model_config = ConfigDict(frozen=True)

    branches: tuple[Branch, ...] = ()
    departments: tuple[Department, ...] = ()
    all_doctors: tuple[Doctor, ...] = ()
    branch_doctors: tuple[Doctor, ...] = ()

    branch_id: Optional[int] = None
    department_id: Optional[int] = None
    doctor_id: Optional[int] = None

    visible_departments: tuple[Department, ...] = ()
    visible_doctors: tuple[Doctor, ...] = ()

    @classmethod
    def initial(
        cls,
        branches: Iterable[Branch],
        departments: Iterable[Department],
        doctors: Iterable[Doctor],
    ) -> "FilterChain":
        departments = tuple(departments)
        doctors = tuple(doctors)
        return cls(
            branches=tuple(branches),
            departments=departments,
            all_doctors=doctors,
            visible_departments=departments,
            visible_doctors=doctors,
        )

    def select_branch(self, branch_id: int | None, branch_doctors: Iterable[Doctor] = ()) -> "FilterChain":
        """Narrow departments to those with a doctor practising in ``branch_id``.

        ``branch_doctors`` must be the doctors fetched for that branch. Passing
        ``None`` clears the branch and restores the full department list.
        """

        if branch_id is None:
            return self.model_copy(
                update={
                    "branch_id": None,
                    "department_id": None,
                    "doctor_id": None,
                    "branch_doctors": (),
                    "visible_departments": self.departments,
                    "visible_doctors": self.all_doctors,
                }
            )

        if self.branches and all(branch.id != branch_id for branch in self.branches):
            raise ValueError(f"Unknown branch {branch_id}")
        scoped = tuple(doctor for doctor in branch_doctors if doctor.is_active)
        return self.model_copy(
            update={
                "branch_id": branch_id,
                "department_id": None,
                "doctor_id": None,
                "branch_doctors": scoped,
                "visible_departments": departments_with_doctors(self.departments, scoped),
                "visible_doctors": scoped,
            }
        )

    def clear_branch(self) -> "FilterChain":
        return self.select_branch(None)

    def select_department(
        self, department_id: int | None, doctors: Iterable[Doctor] = ()
    ) -> "FilterChain":
        """Scope the doctor list to ``department_id`` within the selected branch."""

        if department_id is None:
            return self.model_copy(
                update={
                    "department_id": None,
                    "doctor_id": None,
                    "visible_doctors": self.branch_doctors if self.branch_id is not None else self.all_doctors,
                }
            )

        if all(department.id != department_id for department in self.visible_departments):
            raise ValueError(f"Department {department_id} is not available for the current branch")
        scoped = tuple(
            doctor
            for doctor in doctors
            if doctor.is_active
            and doctor.department_id == department_id
            and (self.branch_id is None or doctor.branch_id == self.branch_id)
        )
        return self.model_copy(
            update={
                "department_id": department_id,
                "doctor_id": None,
                "visible_doctors": scoped,
            }
        )

    def clear_department(self) -> "FilterChain":
        return self.select_department(None)

    def select_doctor(self, doctor_id: int | None) -> "FilterChain":
        if doctor_id is not None and all(doctor.id != doctor_id for doctor in self.visible_doctors):
            raise ValueError(f"Doctor {doctor_id} is not in the current selection")
        return self.model_copy(update={"doctor_id": doctor_id})

    @property
    def selected_doctor(self) -> Optional[Doctor]:
        return next((doctor for doctor in self.visible_doctors if doctor.id == self.doctor_id), None)

    def to_response(self) -> FilterStateResponse:
        return FilterStateResponse(
            branch_id=self.branch_id,
            department_id=self.department_id,
            doctor_id=self.doctor_id,
            branches=list(self.branches),
            departments=list(self.visible_departments),
            doctors=list(self.visible_doctors),
        )


class FilterChainController:
    """Drives a :class:`FilterChain` from directory fetches."""

    def __init__(self, directory: DirectoryService) -> None:
        self._directory = directory
        self._requests = RequestSequence()
        self.chain = FilterChain()
        self.error: Optional[ServiceError] = None
        self.loading = False
        self._branch_token: Optional[int] = None

    async def load(self) -> FilterChain:
        token = self._requests.issue()
        self.loading = True
        try:
            branches = await self._directory.branches()
            departments = await self._directory.departments(with_doctors=False)
            doctors = await self._directory.doctors()
        except ServiceError as exc:
            if self._requests.is_current(token):
                self.error = exc
                self.loading = False
            raise
        if self._requests.is_current(token):
            self.chain = FilterChain.initial(branches, departments, doctors)
            self.error = None
            self.loading = False
        return self.chain

    async def select_branch(self, branch_id: int | None) -> bool:
        """Apply a branch selection once its doctors are fetched; ``False`` if superseded or failed."""

        token = self._requests.issue()
        if branch_id is None:
            self.chain = self.chain.clear_branch()
            self.error = None
            self.loading = False
            self._branch_token = None
            return True

        self._branch_token = token
        self.loading = True
        try:
            doctors = await self._directory.doctors(branch_id=branch_id)
        except ServiceError as exc:
            self._settle_branch(token)
            return self._fail(token, exc)
        self._settle_branch(token)
        return self._apply(token, lambda chain: chain.select_branch(branch_id, doctors))

    async def select_department(self, department_id: int | None) -> bool:
        if self._branch_token is not None:
            raise ValidationGateError("Wait for the branch selection to load before choosing a department")
        token = self._requests.issue()
        if department_id is None:
            self.chain = self.chain.clear_department()
            self.error = None
            self.loading = False
            return True

        branch_id = self.chain.branch_id
        self.loading = True
        try:
            doctors = await self._directory.doctors(branch_id=branch_id, department_id=department_id)
        except ServiceError as exc:
            return self._fail(token, exc)
        return self._apply(token, lambda chain: chain.select_department(department_id, doctors))

    def select_doctor(self, doctor_id: int | None) -> FilterChain:
        self.chain = self.chain.select_doctor(doctor_id)
        return self.chain

    def _settle_branch(self, token: int) -> None:
        if self._branch_token == token:
            self._branch_token = None

    def _apply(self, token: int, transition) -> bool:
        if not self._requests.is_current(token):
            logger.debug("Discarding stale directory response %s", token)
            return False
        self.chain = transition(self.chain)
        self.error = None
        self.loading = False
        return True

    def _fail(self, token: int, exc: ServiceError) -> bool:
        if self._requests.is_current(token):
            logger.warning("Directory lookup failed: %s", exc)
            self.error = exc
            self.loading = False
        return False

    @property
    def departments(self) -> List[Department]:
        return list(self.chain.visible_departments)

    @property
    def doctors(self) -> List[Doctor]:
        return list(self.chain.visible_doctors)
