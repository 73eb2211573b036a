"""
Template variable substitution for email content.

Supports new-style ``{{variable}}`` tags, legacy ``CH-*``/``CHANGE_*``
placeholders and ``{% global 'name' %}`` inline global tags. Substitution
is a fixed, ordered list of rules: the pattern rule runs first, then one
exact-literal rule per legacy placeholder.
"""
import re
from dataclasses import dataclass
from typing import List, Mapping, Optional

from sendemail.models import EmailContact, TemplateValue, TemplateVariables
from sendemail.utils.dates import build_date_vars, build_dates_vars


# Matches {{variable.path}} or {{ variable }}
VARIABLE_TAG = re.compile(r"\{\{([^}]+)\}\}")

# Matches {% global 'name' %} and {% global "name" %}
GLOBAL_TAG = re.compile(r"\{%\s*global\s+(['\"])(.+?)\1\s*%\}")


def _to_text(value: TemplateValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True)
class VariableTagRule:
    """Replaces ``{{ key }}`` with the variable's value, leaving misses untouched."""
    pattern: re.Pattern = VARIABLE_TAG

    def apply(self, text: str, variables: Mapping[str, TemplateValue]) -> str:
        def _replace(match: re.Match) -> str:
            key = match.group(1).strip()
            if key in variables:
                return _to_text(variables[key])
            return match.group(0)

        return self.pattern.sub(_replace, text)


@dataclass(frozen=True)
class LiteralRule:
    """Replaces every occurrence of a fixed placeholder with a variable's value."""
    placeholder: str
    variable: str

    def apply(self, text: str, variables: Mapping[str, TemplateValue]) -> str:
        if self.variable not in variables or self.placeholder not in text:
            return text
        return text.replace(self.placeholder, _to_text(variables[self.variable]))


LEGACY_RULES: List[LiteralRule] = [
    LiteralRule("CH-EMAILONLIST", "contact.name"),
    LiteralRule("CHANGE_SEND_TO", "contact.email"),
    LiteralRule("CHANGE_BCC", "bcc"),
    LiteralRule("CHANGE_MESSAGE_HEADER", "subject"),
    LiteralRule("CH-EMAILTEXT", "message"),
    LiteralRule("CH-EMAILTO", "contact.email"),
    LiteralRule("CH-SUBJECT", "subject"),
    LiteralRule("CH-DATE", "date"),
]

SUBSTITUTION_RULES = [VariableTagRule(), *LEGACY_RULES]


def substitute(template: str, variables: Mapping[str, TemplateValue]) -> str:
    """
    Substitute template variables in a string.

    Unknown ``{{tokens}}`` are left exactly as written so callers can detect
    unresolved variables by scanning the output.

    Args:
        template: Text containing template tags.
        variables: Flat variable map.

    Returns:
        The substituted text.
    """
    result = template
    for rule in SUBSTITUTION_RULES:
        result = rule.apply(result, variables)
    return result


def extract_global_tags(text: Optional[str]) -> List[str]:
    """
    Return the distinct global names referenced by inline tags.

    Names are returned once each, in order of first appearance.
    """
    if not text:
        return []

    names: List[str] = []
    for match in GLOBAL_TAG.finditer(text):
        name = match.group(2)
        if name not in names:
            names.append(name)
    return names


def process_global_tags(text: str, contents: Mapping[str, str]) -> str:
    """
    Replace inline global tags with their content.

    Tags whose name is missing from ``contents`` are replaced with an empty
    string.
    """
    return GLOBAL_TAG.sub(lambda m: contents.get(m.group(2), ""), text)


def build_contact_vars(
    contact: EmailContact,
    index: int,
    total: int,
    extra: Optional[Mapping[str, TemplateValue]] = None
) -> TemplateVariables:
    """
    Build template variables for one contact of an email list.

    Args:
        contact: The recipient.
        index: Zero-based position in the list.
        total: Number of contacts in the list.
        extra: Additional variables; these win over generated ones.

    Returns:
        A fresh variable map.
    """
    variables: TemplateVariables = {
        "contact.name": contact.name,
        "contact.email": contact.email,
        "CH-EMAILONLIST": contact.name,
        "CHANGE_SEND_TO": contact.email,
    }

    for key, value in contact.as_dict().items():
        if value is not None:
            variables[f"contact.{key}"] = value

    variables.update(build_date_vars())
    variables.update(build_dates_vars())
    variables["list.index"] = index
    variables["list.count"] = total
    variables.update(extra or {})
    return variables


def build_single_vars(
    to: str,
    subject: Optional[str] = None,
    extra: Optional[Mapping[str, TemplateValue]] = None
) -> TemplateVariables:
    """Build template variables for a non-list send."""
    variables: TemplateVariables = {
        "contact.email": to,
        "CHANGE_SEND_TO": to,
        "subject": subject or "",
        "CHANGE_MESSAGE_HEADER": subject or "",
    }
    variables.update(build_date_vars())
    variables.update(build_dates_vars())
    variables.update(extra or {})
    return variables


def find_unresolved(text: str) -> List[str]:
    """List the ``{{keys}}`` still present in substituted text."""
    return [m.group(1).strip() for m in VARIABLE_TAG.finditer(text)]


def strip_placeholder(text: str, placeholder: str) -> str:
    """Remove a leftover placeholder along with one leading space."""
    return text.replace(f" {placeholder}", "").replace(placeholder, "")


