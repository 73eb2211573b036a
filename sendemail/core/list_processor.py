"""
Recipient list validation and iteration for bulk sends.
"""
from dataclasses import dataclass
from typing import Iterator, List, Mapping, Optional

from sendemail.core.template_engine import build_contact_vars
from sendemail.models import EmailContact, EmailList, TemplateValue, TemplateVariables
from sendemail.utils.errors import ValidationError


@dataclass(slots=True)
class ListItem:
    """One step of a list iteration."""
    contact: EmailContact
    variables: TemplateVariables
    index: int
    total: int


class ListProcessor:
    """Validates email lists and yields per-contact template variables."""

    def validate(self, email_list: EmailList) -> List[EmailContact]:
        """
        Validate a list and return its contacts.

        Every offending entry is reported, not only the first.

        Raises:
            ValidationError: If the list is empty or entries lack email/name.
        """
        entries = email_list.contacts or []

        if not entries:
            raise ValidationError(
                "Email list is empty",
                ['The "email-list" array has no entries.'],
                "Add contacts to the list file in lists/"
            )

        invalid: List[str] = []
        for i, entry in enumerate(entries):
            if not isinstance(entry, dict):
                invalid.append(f"Entry {i}: not an object")
                continue
            if not entry.get("email"):
                invalid.append(f"Entry {i}: missing 'email' field")
            if not entry.get("name"):
                invalid.append(f"Entry {i}: missing 'name' field")

        if invalid:
            raise ValidationError(
                "Email list has invalid entries",
                invalid,
                'Each entry must have at minimum: { "email": "...", "name": "..." }'
            )

        return [EmailContact.from_dict(entry) for entry in entries]

    def process(
        self,
        email_list: EmailList,
        extra: Optional[Mapping[str, TemplateValue]] = None
    ) -> Iterator[ListItem]:
        """
        Yield one ListItem per contact, in list order.

        The list is validated before the first item is produced. Variables
        are built fresh for every contact.
        """
        contacts = self.validate(email_list)
        total = len(contacts)

        for index, contact in enumerate(contacts):
            variables = build_contact_vars(contact, index, total, extra)
            yield ListItem(contact=contact, variables=variables, index=index, total=total)

    def count(self, email_list: EmailList) -> int:
        return len(email_list.contacts or [])
