"""
Local ``generate_horoscope`` tool.
"""

from typing import Any, Dict

from realtime_bridge.models.events import ToolSpec

ZODIAC_SIGNS = (
    "Aries", "Taurus", "Gemini", "Cancer", "Leo", "Virgo",
    "Libra", "Scorpio", "Sagittarius", "Capricorn", "Aquarius", "Pisces",
)

HOROSCOPES = {
    "Aries": "Take initiative on a stalled idea.",
    "Taurus": "Lean into routines; they'll pay off.",
    "Gemini": "A short chat unlocks a big insight.",
    "Cancer": "Protect your focus; say no once.",
    "Leo": "Spotlight moment—share your work.",
    "Virgo": "Small refinements yield big polish.",
    "Libra": "Balance obligations with a tiny indulgence.",
    "Scorpio": "Follow the thread; research pays off.",
    "Sagittarius": "Say yes to a micro-adventure.",
    "Capricorn": "Structure first, speed later.",
    "Aquarius": "You'll soon meet a new friend.",
    "Pisces": "Quiet time sharpens intuition.",
}

DEFAULT_HOROSCOPE = "A pleasant surprise is on the horizon."

GENERATE_HOROSCOPE_SPEC = ToolSpec(
    name="generate_horoscope",
    description="Give today's horoscope for an astrological sign.",
    parameters={
        "type": "object",
        "properties": {
            "sign": {
                "type": "string",
                "description": "The sign for the horoscope.",
                "enum": list(ZODIAC_SIGNS),
            }
        },
        "required": ["sign"],
    },
)


async def generate_horoscope(args: Dict[str, Any]) -> Dict[str, str]:
    """Return ``{"horoscope": text}``; unknown or missing signs get a generic reading."""
    return {"horoscope": HOROSCOPES.get(args.get("sign"), DEFAULT_HOROSCOPE)}
