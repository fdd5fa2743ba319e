"""
Sheet Mapper
Turns raw Google Sheets rows (list of lists of cell values, header row first)
into dealer counts, production status records and van detail records.

No imports of external services: callers fetch the rows.
Rows that fail admission are skipped and logged, never raised.
"""
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from utils.logger import get_logger


LOCATION_BUCKETS = ("Adelaide City", "Geelong", "Wangaratta", "Ideal")
UNKNOWN_LOCATION = "Unknown"

# (bucket, keywords) pairs evaluated top to bottom; first bucket with a
# keyword contained in the normalized dealer name wins.
# Used by the SCHEDULE tab statistics (/api/stats).
SCHEDULE_DEALER_RULES = (
    ("Ideal", ("IDEAL",)),
    ("Geelong", ("KEAN", "LEON", "LATITUDE")),
    ("Wangaratta", ("HIGH COUNTRY",)),
    ("Adelaide City", ("KAKADU",)),
)

# Used by the month-over-month dashboard (/api/dashboard).
DASHBOARD_DEALER_RULES = (
    ("Adelaide City", ("KAKADU",)),
    ("Geelong", ("LEON", "KEAN")),
    ("Wangaratta", ("HIGH COUNTRY",)),
    ("Ideal", ("IDEAL", "TASMAN")),
)

# Production schedule column mapping (0-indexed, SCHEDULE!A:S)
COL_VAN_NUMBER = 0      # A
COL_MODEL = 3           # D
COL_CUSTOMER_NAME = 5   # F

# Header labels that show up again mid-sheet on printing-format rows
HEADER_LABELS = {
    COL_VAN_NUMBER: "Van Number",
    COL_MODEL: "Model",
    COL_CUSTOMER_NAME: "Customer",
}

# Sequential production stages, earliest first
PRODUCTION_STAGES = (
    (13, "Chassis In"),   # N
    (14, "Walls Up"),     # O
    (15, "Building"),     # P
    (16, "Wiring"),       # Q
    (17, "Cladding"),     # R
    (18, "Finishing"),    # S
)
NOT_STARTED = "Not Started"

# Dashboard sheet: date column holding "Van Due"
COL_VAN_DUE = 1  # B

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%Y/%m/%d",
    "%d %b %Y",
    "%d %B %Y",
    "%d/%m/%y",
)


def _cell(row: Sequence, idx: int) -> str:
    """Return a trimmed string cell value, '' for missing or short rows."""
    if idx is None or idx < 0 or idx >= len(row):
        return ""
    value = row[idx]
    if value is None:
        return ""
    return str(value).strip()


# ═══════════════════════════════════════════════════════════════════
# DEALER LOCATIONS
# ═══════════════════════════════════════════════════════════════════

def classify_dealer(dealer, rules=SCHEDULE_DEALER_RULES) -> str:
    """
    Map a free-text dealer/customer name to a location bucket.

    Args:
        dealer: Raw cell value
        rules: Ordered (bucket, keywords) pairs

    Returns:
        One of LOCATION_BUCKETS, or UNKNOWN_LOCATION
    """
    normalized = ("" if dealer is None else str(dealer)).upper().strip()
    for bucket, keywords in rules:
        if any(keyword in normalized for keyword in keywords):
            return bucket
    return UNKNOWN_LOCATION


@dataclass
class DealerLocationCount:
    name: str
    count: int
    trend: float

    def to_dict(self) -> Dict:
        return {"name": self.name, "count": self.count, "trend": self.trend}


@dataclass
class DealerTally:
    """Per-bucket dealer counts, Unknown included but kept out of totals."""
    counts: Dict[str, int] = field(
        default_factory=lambda: {name: 0 for name in LOCATION_BUCKETS + (UNKNOWN_LOCATION,)}
    )
    unknown_dealers: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.counts[name] for name in LOCATION_BUCKETS)

    @property
    def processed(self) -> int:
        return self.total + self.counts[UNKNOWN_LOCATION]

    def stats(self) -> List[DealerLocationCount]:
        """Counts for the four named buckets with trend = share of total in percent."""
        total = self.total
        return [
            DealerLocationCount(
                name=name,
                count=self.counts[name],
                trend=(self.counts[name] / total) * 100 if total > 0 else 0,
            )
            for name in LOCATION_BUCKETS
        ]


def count_dealer_locations(rows: Sequence[Sequence], rules=SCHEDULE_DEALER_RULES,
                           column: int = 0) -> DealerTally:
    """
    Count dealer rows per location bucket.

    The first row is the header and is skipped. Empty dealer cells are
    skipped; unmatched dealers land in Unknown.
    """
    logger = get_logger()
    tally = DealerTally()

    for row_idx, row in enumerate(rows[1:], start=2):
        dealer = _cell(row, column)
        if not dealer:
            logger.log_row_skipped(row_idx, "empty dealer")
            continue

        location = classify_dealer(dealer, rules)
        tally.counts[location] += 1
        if location == UNKNOWN_LOCATION:
            tally.unknown_dealers.append(dealer)

    if tally.unknown_dealers:
        logger.debug(f"Unknown dealers: {tally.unknown_dealers}", component="SheetMapper")

    return tally


# ═══════════════════════════════════════════════════════════════════
# PRODUCTION STATUS
# ═══════════════════════════════════════════════════════════════════

@dataclass
class VanProductionRecord:
    van_number: str
    customer_name: str
    model: str
    status: str

    def to_dict(self) -> Dict:
        return {
            "vanNumber": self.van_number,
            "customerName": self.customer_name,
            "model": self.model,
            "status": self.status,
        }


def derive_production_status(row: Sequence, stages=PRODUCTION_STAGES) -> str:
    """
    Return the most advanced stage whose cell is populated.

    Stages are scanned earliest to latest and every populated one overwrites
    the running status, so gaps in earlier stages do not matter.
    """
    status = NOT_STARTED
    for column, name in stages:
        if _cell(row, column):
            status = name
    return status


def van_number_suffix(van_number: str, prefix: str = "LTRV") -> Optional[int]:
    """Numeric part of '<prefix> NNNNN', or None when the format does not match."""
    match = re.fullmatch(rf"{re.escape(prefix)} (\d{{5}})", van_number or "")
    if not match:
        return None
    return int(match.group(1))


def build_production_status(rows: Sequence[Sequence], floor: int = 25101,
                            prefix: str = "LTRV",
                            stages=PRODUCTION_STAGES) -> List[VanProductionRecord]:
    """
    Build the production status list from SCHEDULE rows, newest van first.

    Admission (in order): required fields present, not a repeated header
    row, van number matches the prefix + 5 digits, suffix >= floor.
    """
    logger = get_logger()
    records = []

    for row_idx, row in enumerate(rows[1:], start=2):
        van_number = _cell(row, COL_VAN_NUMBER)
        model = _cell(row, COL_MODEL)
        customer_name = _cell(row, COL_CUSTOMER_NAME)

        if not van_number or not model or not customer_name:
            logger.log_row_skipped(row_idx, "empty required field")
            continue

        if (van_number == HEADER_LABELS[COL_VAN_NUMBER]
                or model == HEADER_LABELS[COL_MODEL]
                or customer_name == HEADER_LABELS[COL_CUSTOMER_NAME]):
            logger.log_row_skipped(row_idx, "header row")
            continue

        suffix = van_number_suffix(van_number, prefix)
        if suffix is None:
            logger.log_row_skipped(row_idx, "invalid van number format", van_number)
            continue

        if suffix < floor:
            logger.log_row_skipped(row_idx, f"van number below {floor}", van_number)
            continue

        records.append(VanProductionRecord(
            van_number=van_number,
            customer_name=customer_name,
            model=model,
            status=derive_production_status(row, stages),
        ))

    records.sort(key=lambda r: van_number_suffix(r.van_number, prefix), reverse=True)
    logger.info(f"Processed {len(records)} valid production entries", component="SheetMapper")
    return records


# ═══════════════════════════════════════════════════════════════════
# VAN DETAILS
# ═══════════════════════════════════════════════════════════════════

# field name -> header label on the Van Details tab
VAN_DETAIL_HEADERS = {
    "van_number": "Van Number",
    "customer_name": "Customer Name",
    "model": "Model",
    "benchtops": "Benchtops",
    "doors": "Doors",
    "upholstery": "Upholstery",
    "chassis": "Chassis",
    "furniture": "Furniture",
    "comments": "Comments",
    "chassis_in": "Chassis In",
    "walls_up": "Walls Up",
    "building": "Building",
    "wiring": "Wiring",
    "cladding": "Cladding",
    "finishing": "Finishing",
}

COMPONENT_FLAGS = ("benchtops", "doors", "upholstery", "chassis", "furniture")
STAGE_DATES = ("chassis_in", "walls_up", "building", "wiring", "cladding", "finishing")

# Sheets disagree on how a ticked cell is written
TRUE_MARKERS: Dict[str, Callable[[str], bool]] = {
    "checkbox": lambda value: value == "TRUE",
    "x": lambda value: value.lower() == "x",
}


def is_marked(value: str, convention: str = "checkbox") -> bool:
    """Test a cell against a true-marker convention ('checkbox' or 'x')."""
    try:
        test = TRUE_MARKERS[convention]
    except KeyError:
        raise ValueError(f"Unknown true-marker convention: {convention}")
    return test(value or "")


@dataclass
class VanDetailRecord:
    van_number: str
    customer_name: str
    model: str
    benchtops: bool
    doors: bool
    upholstery: bool
    chassis: bool
    furniture: bool
    comments: str
    chassis_in: Optional[str] = None
    walls_up: Optional[str] = None
    building: Optional[str] = None
    wiring: Optional[str] = None
    cladding: Optional[str] = None
    finishing: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "vanNumber": self.van_number,
            "customerName": self.customer_name,
            "model": self.model,
            "benchtops": self.benchtops,
            "doors": self.doors,
            "upholstery": self.upholstery,
            "chassis": self.chassis,
            "furniture": self.furniture,
            "comments": self.comments,
            "chassisIn": self.chassis_in,
            "wallsUp": self.walls_up,
            "building": self.building,
            "wiring": self.wiring,
            "cladding": self.cladding,
            "finishing": self.finishing,
        }


def find_van_details(rows: Sequence[Sequence], van_number: str,
                     true_marker: str = "checkbox") -> Optional[VanDetailRecord]:
    """
    Look up a van on the Van Details tab by exact van number.

    Column positions come from the header row. The first matching data row
    wins. Returns None when there is no such van.
    """
    if len(rows) < 2:
        return None

    headers = [str(h).strip() for h in rows[0]]
    index = {
        name: headers.index(label) if label in headers else None
        for name, label in VAN_DETAIL_HEADERS.items()
    }
    if index["van_number"] is None:
        get_logger().warning("Van Details tab has no 'Van Number' column", component="SheetMapper")
        return None

    for row in rows[1:]:
        if _cell(row, index["van_number"]) != van_number:
            continue

        values = {name: _cell(row, idx) for name, idx in index.items()}
        return VanDetailRecord(
            van_number=values["van_number"],
            customer_name=values["customer_name"],
            model=values["model"],
            comments=values["comments"],
            **{flag: is_marked(values[flag], true_marker) for flag in COMPONENT_FLAGS},
            **{stage: values[stage] or None for stage in STAGE_DATES},
        )

    return None


# ═══════════════════════════════════════════════════════════════════
# DASHBOARD (month-over-month and history)
# ═══════════════════════════════════════════════════════════════════

@dataclass
class LocationStat:
    name: str
    active_products: int
    trend: float

    def to_dict(self) -> Dict:
        return {"name": self.name, "activeProducts": self.active_products, "trend": self.trend}


@dataclass
class HistoricalPoint:
    date: str
    location: str
    value: int

    def to_dict(self) -> Dict:
        return {"date": self.date, "location": self.location, "value": self.value}


def parse_sheet_date(value: str) -> Optional[date]:
    """Parse a formatted date cell (day-first for slashed dates); None if unparseable."""
    value = (value or "").strip()
    if not value:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


def calculate_trend(current: int, previous: int) -> float:
    """Percentage change from previous to current, one decimal; 0 when previous is 0."""
    if previous == 0:
        return 0
    return round(((current - previous) / previous) * 100, 1)


def find_dealer_column(header_row: Sequence) -> int:
    """Index of the 'Dealer' header (case-insensitive)."""
    for idx, label in enumerate(header_row):
        if str(label).strip().lower() == "dealer":
            return idx
    raise ValueError("Dealer column not found")


def _dated_dealer_rows(rows: Sequence[Sequence], rules) -> List[Tuple[str, date]]:
    """(location, van due date) for every classifiable, dated data row."""
    logger = get_logger()
    dealer_col = find_dealer_column(rows[0])
    result = []

    for row_idx, row in enumerate(rows[1:], start=2):
        dealer = _cell(row, dealer_col)
        if not dealer:
            continue

        location = classify_dealer(dealer, rules)
        if location == UNKNOWN_LOCATION:
            continue

        due_raw = _cell(row, COL_VAN_DUE)
        if not due_raw:
            continue

        due = parse_sheet_date(due_raw)
        if due is None:
            logger.log_row_skipped(row_idx, "invalid date", due_raw)
            continue

        result.append((location, due))

    return result


def location_stats(rows: Sequence[Sequence], today: date = None,
                   rules=DASHBOARD_DEALER_RULES) -> List[LocationStat]:
    """
    Vans due this calendar month per location, with month-over-month trend.

    Raises:
        ValueError: when the header row has no Dealer column
    """
    today = today or date.today()
    if today.month == 1:
        prev_year, prev_month = today.year - 1, 12
    else:
        prev_year, prev_month = today.year, today.month - 1

    current = {name: 0 for name in LOCATION_BUCKETS}
    previous = {name: 0 for name in LOCATION_BUCKETS}

    for location, due in _dated_dealer_rows(rows, rules):
        if (due.year, due.month) == (today.year, today.month):
            current[location] += 1
        elif (due.year, due.month) == (prev_year, prev_month):
            previous[location] += 1

    return [
        LocationStat(name=name, active_products=current[name],
                     trend=calculate_trend(current[name], previous[name]))
        for name in LOCATION_BUCKETS
    ]


def historical_data(rows: Sequence[Sequence], rules=DASHBOARD_DEALER_RULES) -> List[HistoricalPoint]:
    """
    Monthly van counts per location, oldest month first.

    Every bucket is emitted for every month that has at least one van.
    """
    monthly: Dict[str, Dict[str, int]] = {}

    for location, due in _dated_dealer_rows(rows, rules):
        month_key = f"{due.year}-{due.month:02d}"
        counts = monthly.setdefault(month_key, {name: 0 for name in LOCATION_BUCKETS})
        counts[location] += 1

    return [
        HistoricalPoint(date=month_key, location=name, value=counts[name])
        for month_key, counts in sorted(monthly.items())
        for name in LOCATION_BUCKETS
    ]
