"""Static rule data: sender registries, subject keywords, body marker shapes."""
import re

# ============================================================================
# THRESHOLD POLICY
# ============================================================================

# Recall-first cut-off. Raising it trades recall for precision and must stay
# at or below the ceiling.
CONFIDENCE_THRESHOLD = 30
CONFIDENCE_THRESHOLD_CEILING = 40

# ============================================================================
# RULE WEIGHTS AND REASONS
# ============================================================================

SCHEMA_MARKUP_SCORE = 50
KNOWN_SENDER_SCORE = 20
CONFIRMATION_KEYWORD_SCORE = 15
FLIGHT_KEYWORD_SCORE = 10
FLIGHT_MARKERS_SCORE = 10

MIN_FLIGHT_MARKERS = 2

SCHEMA_MARKUP_REASON = "Has FlightReservation schema markup"
KNOWN_SENDER_REASON = "Known airline/OTA sender"
CONFIRMATION_KEYWORD_REASON = "Confirmation keyword in subject"
FLIGHT_KEYWORD_REASON = "Flight keyword in subject"
FLIGHT_MARKERS_REASON_PREFIX = "Flight markers: "

# ============================================================================
# SENDER REGISTRIES
# ============================================================================

KNOWN_AIRLINE_SENDERS = [
    "united.com",
    "delta.com",
    "aa.com",  # American Airlines
    "southwest.com",
    "jetblue.com",
    "alaskaair.com",
    "spirit.com",
    "frontier.com",
    "allegiantair.com",
]

KNOWN_OTA_SENDERS = [
    "expedia.com",
    "kayak.com",
    "priceline.com",
    "booking.com",
    "orbitz.com",
    "travelocity.com",
    "hotwire.com",
    "cheapoair.com",
]

# ============================================================================
# SUBJECT KEYWORDS
# ============================================================================

CONFIRMATION_KEYWORDS = ["confirmation", "confirmed", "itinerary", "booking", "receipt"]

FLIGHT_KEYWORDS = ["flight", "airline", "boarding", "departure", "arrival"]

SCHEMA_MARKUP_TOKEN = "flightreservation"

# ============================================================================
# BODY MARKERS
# ============================================================================

# Token shapes; uppercase only, otherwise any three-letter word is an airport.
FLIGHT_MARKER_PATTERNS = [
    ("confirmation code", re.compile(r"\b[A-Z0-9]{6}\b")),
    ("flight number", re.compile(r"\b[A-Z]{2}\d{1,4}\b")),
    ("airport code", re.compile(r"\b[A-Z]{3}\b")),
]

# ============================================================================
# MAILBOX PRE-FILTER
# ============================================================================

SEARCH_QUERY_KEYWORDS = [
    "flight",
    "airline",
    "boarding",
    "departure",
    "arrival",
    "itinerary",
    "confirmation",
]

SEARCH_QUERY_SENDERS = [
    "united.com",
    "delta.com",
    "aa.com",
    "southwest.com",
    "jetblue.com",
    "expedia.com",
    "kayak.com",
    "priceline.com",
    "booking.com",
]

SEARCH_QUERY_AFTER = "2000/01/01"
