"""
Checksum Validator

Mod-97 checks for IBAN bank accounts and Belgian OGM structured
communications (+++XXX/XXXX/XXXXX+++). An absent value is INCOMPLETE,
never FAILED: documents may legitimately omit payment details.
"""

import logging
import re
from typing import Optional, Union

from docaudit.models.audit import AuditCheck, CheckType

logger = logging.getLogger(__name__)

IBAN_MIN_LENGTH = 15
IBAN_MAX_LENGTH = 34

# National IBAN lengths for common SEPA countries
IBAN_LENGTHS = {
    'BE': 16,
    'NL': 18,
    'LU': 20,
    'DE': 22,
    'GB': 22,
    'FR': 27,
    'ES': 24,
    'IT': 27,
    'AT': 20,
    'CH': 21,
    'IE': 22,
    'PT': 25,
}

_IBAN_PATTERN = re.compile(r'^[A-Z]{2}[0-9]{2}[A-Z0-9]+$')
_OGM_BODY_PATTERN = re.compile(r'^[\d/\s.\-]+$')

OGM_DIGITS = 12
OGM_COMPACT_DIGITS = 10


def _mod97(numeral: str) -> int:
    """Remainder of a (possibly very long) digit string, digit by digit"""
    remainder = 0
    for digit in numeral:
        remainder = (remainder * 10 + int(digit)) % 97
    return remainder


class ChecksumValidator:
    """IBAN and OGM checksum validation"""

    # IBAN

    @staticmethod
    def normalize_iban(iban: str) -> str:
        return re.sub(r'\s+', '', iban).upper()

    @staticmethod
    def is_valid_iban(iban: Optional[str]) -> bool:
        """True for a well-formed IBAN with a valid mod-97 checksum"""
        if not iban:
            return False
        normalized = ChecksumValidator.normalize_iban(iban)
        if not IBAN_MIN_LENGTH <= len(normalized) <= IBAN_MAX_LENGTH:
            return False
        if not _IBAN_PATTERN.match(normalized):
            return False
        expected_length = IBAN_LENGTHS.get(normalized[:2])
        if expected_length is not None and len(normalized) != expected_length:
            return False
        return ChecksumValidator._iban_remainder(normalized) == 1

    @staticmethod
    def _iban_remainder(normalized: str) -> int:
        rearranged = normalized[4:] + normalized[:4]
        # A=10 .. Z=35
        numeral = ''.join(str(int(c, 36)) for c in rearranged)
        return _mod97(numeral)

    @staticmethod
    def audit_iban(iban: Optional[str], field: str = 'iban') -> AuditCheck:
        """Check an extracted IBAN"""
        if iban is None or not iban.strip():
            return AuditCheck.incomplete(
                CheckType.CHECKSUM_IBAN, field, "No IBAN provided"
            )

        normalized = ChecksumValidator.normalize_iban(iban)

        if not IBAN_MIN_LENGTH <= len(normalized) <= IBAN_MAX_LENGTH:
            return AuditCheck.failed(
                CheckType.CHECKSUM_IBAN, field,
                f"IBAN has {len(normalized)} characters; valid IBANs have "
                f"{IBAN_MIN_LENGTH}-{IBAN_MAX_LENGTH}",
                hint="Count the characters of the IBAN; a group may have been skipped or repeated",
                actual=normalized,
            )

        if not _IBAN_PATTERN.match(normalized):
            return AuditCheck.failed(
                CheckType.CHECKSUM_IBAN, field,
                "IBAN contains invalid characters or does not start with a country code and check digits",
                hint="An IBAN is 2 letters, 2 digits, then letters/digits only",
                actual=normalized,
            )

        country = normalized[:2]
        expected_length = IBAN_LENGTHS.get(country)
        if expected_length is not None and len(normalized) != expected_length:
            return AuditCheck.failed(
                CheckType.CHECKSUM_IBAN, field,
                f"{country} IBAN must have {expected_length} characters, found {len(normalized)}",
                hint="Re-read the bank details; a digit is missing or duplicated",
                expected=str(expected_length),
                actual=normalized,
            )

        if ChecksumValidator._iban_remainder(normalized) != 1:
            return AuditCheck.failed(
                CheckType.CHECKSUM_IBAN, field,
                f"IBAN checksum invalid for {normalized}",
                hint="One or more digits are probably misread (0/O, 1/I, 8/B)",
                actual=normalized,
            )

        return AuditCheck.passed(CheckType.CHECKSUM_IBAN, field, "IBAN checksum valid")

    # OGM

    @staticmethod
    def ogm_check_digits(base: Union[str, int]) -> int:
        """Check pair for an OGM base: base mod 97, with 0 written as 97"""
        remainder = int(base) % 97
        return 97 if remainder == 0 else remainder

    @staticmethod
    def format_ogm(base: Union[str, int]) -> str:
        """
        Build a valid structured communication from a 10-digit base.

        Example:
            format_ogm("0900000015") -> "+++090/0000/01565+++"
        """
        digits = str(base).zfill(OGM_DIGITS - 2)
        if len(digits) != OGM_DIGITS - 2 or not digits.isdigit():
            raise ValueError(f"OGM base must be {OGM_DIGITS - 2} digits, got {base!r}")
        full = f"{digits}{ChecksumValidator.ogm_check_digits(digits):02d}"
        return f"+++{full[:3]}/{full[3:7]}/{full[7:]}+++"

    @staticmethod
    def is_structured_reference(reference: str) -> bool:
        """Structured communications are delimited or consist of digits and slashes only"""
        text = reference.strip()
        if '+++' in text or '***' in text:
            return True
        return bool(_OGM_BODY_PATTERN.match(text))

    @staticmethod
    def _split_ogm(digits: str) -> Optional[tuple]:
        if len(digits) in (OGM_DIGITS, OGM_COMPACT_DIGITS):
            return digits[:-2], digits[-2:]
        return None

    @staticmethod
    def is_valid_ogm(reference: Optional[str]) -> bool:
        """True for a structured communication whose check pair matches"""
        if not reference or not ChecksumValidator.is_structured_reference(reference):
            return False
        split = ChecksumValidator._split_ogm(re.sub(r'\D', '', reference))
        if split is None:
            return False
        base, check = split
        return ChecksumValidator.ogm_check_digits(base) == int(check)

    @staticmethod
    def audit_ogm(reference: Optional[str], field: str = 'payment_reference') -> AuditCheck:
        """Check an extracted payment reference"""
        if reference is None or not reference.strip():
            return AuditCheck.incomplete(
                CheckType.CHECKSUM_OGM, field, "No payment reference provided"
            )

        if not ChecksumValidator.is_structured_reference(reference):
            logger.debug(f"Payment reference is free text, skipping OGM check: {reference!r}")
            return AuditCheck.incomplete(
                CheckType.CHECKSUM_OGM, field,
                "Payment reference is not a structured communication"
            )

        digits = re.sub(r'\D', '', reference)
        split = ChecksumValidator._split_ogm(digits)
        if split is None:
            return AuditCheck.failed(
                CheckType.CHECKSUM_OGM, field,
                f"Structured communication must have {OGM_DIGITS} digits, found {len(digits)}",
                hint="The format is +++XXX/XXXX/XXXXX+++ (3, 4 and 5 digits)",
                actual=reference.strip(),
            )

        base, check = split
        expected = ChecksumValidator.ogm_check_digits(base)
        if expected != int(check):
            return AuditCheck.failed(
                CheckType.CHECKSUM_OGM, field,
                f"OGM check digits {check} do not match base {base} (expected {expected:02d})",
                hint="A digit of the structured communication is probably misread",
                expected=f"{expected:02d}",
                actual=check,
            )

        return AuditCheck.passed(CheckType.CHECKSUM_OGM, field, "OGM checksum valid")
