"""
Contact form validation.
"""

import re
from typing import Dict, List, Optional

from .models import FormData

FormErrors = Dict[str, str]


class FormValidator:
    """
    Validates the booking form.

    ``validate`` yields inline errors for fields whose value is present but
    malformed. Required fields are checked separately by ``missing_fields``
    so an empty field never shows an inline error.
    """

    REQUIRED_FIELDS = ("name", "email", "contact_number", "college")

    def __init__(self, email_domain: str = "jkkn.ac.in", contact_number_digits: int = 10):
        self.email_domain = email_domain
        self.contact_number_digits = contact_number_digits
        self._email_pattern = re.compile(rf"@{re.escape(email_domain)}\Z")
        self._phone_pattern = re.compile(rf"[0-9]{{{contact_number_digits}}}")

    def validate(self, form: FormData) -> FormErrors:
        """
        Return a mapping of field name to error message.

        Args:
            form: Current form values

        Returns:
            Empty dict when every filled-in field is well formed
        """
        errors: FormErrors = {}

        if form.email and not self._email_pattern.search(form.email):
            errors["email"] = f"Email must end with @{self.email_domain}"

        if form.contact_number and not self._phone_pattern.fullmatch(form.contact_number):
            errors["contact_number"] = f"Must be a {self.contact_number_digits}-digit number."

        return errors

    def missing_fields(
        self,
        form: FormData,
        selected_date: Optional[object] = None,
        selected_slot: Optional[str] = None,
    ) -> List[str]:
        """List required values that are still empty at submit time."""
        missing = [name for name in self.REQUIRED_FIELDS if not getattr(form, name).strip()]
        if selected_date is None:
            missing.append("date")
        if not selected_slot:
            missing.append("slot")
        return missing

    def can_submit(
        self,
        form: FormData,
        terms_accepted: bool,
        selected_date: Optional[object] = None,
        selected_slot: Optional[str] = None,
    ) -> bool:
        """Gate for the submit action."""
        return (
            not self.missing_fields(form, selected_date, selected_slot)
            and not self.validate(form)
            and terms_accepted
        )
