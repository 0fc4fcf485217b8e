"""External destination validation: CBU/CVU format, bank registry, blocklist"""

import re
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from mipago_gateway.config import settings
from mipago_gateway.domain.exceptions import InactiveAccount, InvalidAccountFormat
from mipago_gateway.domain.models import ResolvedDestination

CBU_LENGTH = 22
CVU_LENGTH = 10
UNKNOWN_BANK = "UnknownBank"

_DIGITS = re.compile(r"^[0-9]+$")
_WHITESPACE = re.compile(r"\s+")

# First three digits of the account number -> bank
BANK_REGISTRY: Mapping[str, str] = MappingProxyType(
    {
        "000": "Banco Central",
        "005": "Banco Diagonal",
        "007": "Banco de Galicia",
        "011": "Banco de la Nacion Argentina",
        "014": "Banco de la Provincia de Buenos Aires",
        "015": "ICBC",
        "017": "BBVA",
        "020": "Banco de la Provincia de Cordoba",
        "027": "Banco Supervielle",
        "029": "Banco de la Ciudad de Buenos Aires",
        "034": "Banco Patagonia",
        "044": "Banco Hipotecario",
        "045": "Banco de San Juan",
        "072": "Banco Santander",
        "143": "Brubank",
        "150": "HSBC",
        "191": "Banco Credicoop",
        "285": "Banco Macro",
        "299": "Banco Comafi",
        "322": "Banco Industrial",
        "384": "Wilobank",
        "389": "Banco Columbia",
    }
)


def normalize_account_number(raw: str) -> str:
    return _WHITESPACE.sub("", raw or "")


def resolve_bank_name(account_number: str) -> str:
    return BANK_REGISTRY.get(account_number[:3], UNKNOWN_BANK)


def mask_account_number(account_number: str) -> str:
    """Show only the last 4 digits"""
    if len(account_number) <= 4:
        return "****"
    return "*" * (len(account_number) - 4) + account_number[-4:]


def validate_destination(
    raw_account_number: str,
    blocklist: Optional[Iterable[str]] = None,
) -> ResolvedDestination:
    """
    Validate an external CBU (22 digits) or CVU (10 digits).

    Unknown bank prefixes resolve to UnknownBank and remain valid.

    Raises:
        InvalidAccountFormat: not exactly 22 or 10 numeric digits
        InactiveAccount: destination is blocklisted
    """
    account_number = normalize_account_number(raw_account_number)

    if len(account_number) == CBU_LENGTH:
        account_type = "CBU"
    elif len(account_number) == CVU_LENGTH:
        account_type = "CVU"
    else:
        raise InvalidAccountFormat(
            "Account number must be 22 digits (CBU) or 10 digits (CVU)",
            context={"length": len(account_number)},
        )

    if not _DIGITS.match(account_number):
        raise InvalidAccountFormat(
            f"{account_type} must contain only digits",
            context={"account_type": account_type},
        )

    blocked = set(settings.blocked_destinations if blocklist is None else blocklist)
    if account_number in blocked:
        raise InactiveAccount(
            "Destination account is inactive",
            context={"destination": mask_account_number(account_number)},
        )

    return ResolvedDestination(
        account_number=account_number,
        account_type=account_type,
        bank_code=account_number[:3],
        bank_name=resolve_bank_name(account_number),
    )
