"""
Country Resolver
Maps canonical phone numbers to ISO country codes by dialing-code prefix
"""
import logging
from typing import Dict, Mapping, Optional

from app.utils.phone_numbers import is_canonical

logger = logging.getLogger(__name__)


# Dialing code -> ISO 3166 alpha-2. Prefix-disjoint: no code extends another.
DIALING_CODES: Dict[str, str] = {
    "+234": "NG",  # Nigeria
    "+254": "KE",  # Kenya
    "+233": "GH",  # Ghana
    "+256": "UG",  # Uganda
    "+250": "RW",  # Rwanda
    "+231": "LR",  # Liberia
    "+27": "ZA",   # South Africa
    "+251": "ET",  # Ethiopia
    "+255": "TZ",  # Tanzania
    "+220": "GM",  # Gambia
    "+221": "SN",  # Senegal
    "+225": "CI",  # Cote d'Ivoire
    "+226": "BF",  # Burkina Faso
    "+227": "NE",  # Niger
    "+228": "TG",  # Togo
    "+229": "BJ",  # Benin
    "+230": "MU",  # Mauritius
    "+232": "SL",  # Sierra Leone
    "+235": "TD",  # Chad
    "+236": "CF",  # Central African Republic
    "+237": "CM",  # Cameroon
    "+238": "CV",  # Cape Verde
    "+239": "ST",  # Sao Tome and Principe
    "+240": "GQ",  # Equatorial Guinea
    "+241": "GA",  # Gabon
    "+242": "CG",  # Republic of the Congo
    "+243": "CD",  # DR Congo
    "+244": "AO",  # Angola
    "+245": "GW",  # Guinea-Bissau
    "+246": "IO",  # British Indian Ocean Territory
    "+247": "AC",  # Ascension Island
    "+248": "SC",  # Seychelles
    "+249": "SD",  # Sudan
    "+252": "SO",  # Somalia
    "+253": "DJ",  # Djibouti
    "+257": "BI",  # Burundi
    "+258": "MZ",  # Mozambique
    "+260": "ZM",  # Zambia
    "+261": "MG",  # Madagascar
    "+262": "RE",  # Reunion
    "+263": "ZW",  # Zimbabwe
    "+264": "NA",  # Namibia
    "+265": "MW",  # Malawi
    "+266": "LS",  # Lesotho
    "+267": "BW",  # Botswana
    "+268": "SZ",  # Eswatini
    "+269": "KM",  # Comoros
    "+290": "SH",  # Saint Helena
    "+291": "ER",  # Eritrea
    "+297": "AW",  # Aruba
    "+298": "FO",  # Faroe Islands
    "+299": "GL",  # Greenland
}


class CountryResolver:
    """
    Resolves a canonical number ("+<digits>") to its country.

    Longest prefix wins. Numbers outside the covered set resolve to None;
    that is a normal outcome (priced at the international rate), not an error.
    """

    def __init__(self, dialing_codes: Optional[Mapping[str, str]] = None):
        self._codes: Dict[str, str] = dict(dialing_codes if dialing_codes is not None else DIALING_CODES)
        # Probe longest prefixes first
        self._prefix_lengths = sorted({len(code) for code in self._codes}, reverse=True)

    def resolve(self, phone_number: str) -> Optional[str]:
        """
        Resolve the country for a canonical number.

        Args:
            phone_number: Number already normalized to "+<digits>"

        Returns:
            ISO country code, or None if no dialing code matches
        """
        if not is_canonical(phone_number):
            return None

        for length in self._prefix_lengths:
            country = self._codes.get(phone_number[:length])
            if country is not None:
                return country

        logger.debug(f"No dialing code matches {phone_number}")
        return None

    def known_countries(self) -> frozenset:
        """All country codes this resolver can produce"""
        return frozenset(self._codes.values())
