# styleai/face_shape.py
from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from .landmarks import Landmark, extract_key_landmarks
from .measurements import calculate_measurements
from .schemas import FaceClassification, FaceMeasurements, FaceShape

# ---------------- Tunables ----------------
BASE_CONFIDENCE = 50
MIN_CONFIDENCE  = 50
MAX_CONFIDENCE  = 98

OVAL_WHR    = (0.70, 0.75)
OVAL_JCR    = (0.75, 0.85)
ROUND_WHR_MIN = 0.85   # exclusive
ROUND_JCR_MIN = 0.85   # exclusive
SQUARE_WHR  = (0.85, 1.00)
SQUARE_JCR_MIN = 0.90
HEART_FJR_MIN  = 1.15
HEART_JCR_MAX  = 0.75  # exclusive
OBLONG_WHR_MAX = 0.65  # exclusive
DIAMOND_FCR_MAX = 0.95  # exclusive
DIAMOND_JCR = (0.70, 0.85)

# Ideal points for shapes scored by falloff rather than a band
ROUND_IDEAL_WHR, ROUND_WHR_FALLOFF = 0.95, 0.30
ROUND_IDEAL_JCR, ROUND_JCR_FALLOFF = 0.92, 0.20
SQUARE_IDEAL_JCR, SQUARE_JCR_FALLOFF = 0.95, 0.15
# ------------------------------------------


def _between(v: float, band: Tuple[float, float]) -> bool:
    return band[0] <= v <= band[1]


def determine_face_shape(m: FaceMeasurements) -> FaceShape:
    """Decision tree over the measured ratios. First match wins.

    The order is a tie-break policy: square inputs with a jaw/cheek ratio
    above 0.85 are claimed by round first, and diamond only sees what the
    five earlier rules leave behind.
    """
    whr, jcr = m.width_height_ratio, m.jaw_cheek_ratio
    fjr, fcr = m.forehead_jaw_ratio, m.forehead_cheek_ratio

    if _between(whr, OVAL_WHR) and _between(jcr, OVAL_JCR):
        return FaceShape.OVAL
    if whr > ROUND_WHR_MIN and jcr > ROUND_JCR_MIN:
        return FaceShape.ROUND
    if _between(whr, SQUARE_WHR) and jcr >= SQUARE_JCR_MIN:
        return FaceShape.SQUARE
    if fjr >= HEART_FJR_MIN and jcr < HEART_JCR_MAX:
        return FaceShape.HEART
    if whr < OBLONG_WHR_MAX:
        return FaceShape.OBLONG
    if fcr < DIAMOND_FCR_MAX and _between(jcr, DIAMOND_JCR):
        return FaceShape.DIAMOND
    return FaceShape.OVAL


def calculate_range_score(value: float, lo: float, hi: float) -> float:
    """0..1 fit of `value` against [lo, hi].

    Inside the band the score drops at most 20% from centre to edge; outside
    it falls off linearly, reaching 0 one band-width away.
    """
    span = hi - lo
    if value < lo or value > hi:
        outside = lo - value if value < lo else value - hi
        return max(0.0, 1.0 - outside / span)
    center = (lo + hi) / 2.0
    return 1.0 - (abs(value - center) / (span / 2.0)) * 0.2


def _point_score(value: float, ideal: float, falloff: float) -> float:
    return max(0.0, 1.0 - abs(value - ideal) / falloff)


def calculate_confidence(shape: FaceShape, m: FaceMeasurements) -> int:
    whr, jcr = m.width_height_ratio, m.jaw_cheek_ratio
    fjr, fcr = m.forehead_jaw_ratio, m.forehead_cheek_ratio
    shape = FaceShape(shape)

    if shape is FaceShape.OVAL:
        score = calculate_range_score(whr, *OVAL_WHR) * 24 + calculate_range_score(jcr, *OVAL_JCR) * 24
    elif shape is FaceShape.ROUND:
        score = (_point_score(whr, ROUND_IDEAL_WHR, ROUND_WHR_FALLOFF) * 24 +
                 _point_score(jcr, ROUND_IDEAL_JCR, ROUND_JCR_FALLOFF) * 24)
    elif shape is FaceShape.SQUARE:
        score = (_point_score(jcr, SQUARE_IDEAL_JCR, SQUARE_JCR_FALLOFF) * 28 +
                 calculate_range_score(whr, *SQUARE_WHR) * 20)
    elif shape is FaceShape.HEART:
        forehead = min(1.0, (fjr - HEART_FJR_MIN) / 0.35) if fjr > HEART_FJR_MIN else 0.0
        jaw = (HEART_JCR_MAX - jcr) / 0.15 if jcr < HEART_JCR_MAX else 0.0
        score = forehead * 28 + jaw * 20
    elif shape is FaceShape.OBLONG:
        length = (OBLONG_WHR_MAX - whr) / 0.15 if whr < OBLONG_WHR_MAX else 0.0
        score = min(1.0, length) * 48
    else:  # diamond
        forehead = (DIAMOND_FCR_MAX - fcr) / 0.2 if fcr < DIAMOND_FCR_MAX else 0.0
        score = min(1.0, forehead) * 24 + calculate_range_score(jcr, *DIAMOND_JCR) * 24

    confidence = BASE_CONFIDENCE + score
    return int(round(min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, confidence))))


def _pct(v: float) -> int:
    return int(round(v * 100))


def generate_reasoning(shape: FaceShape, m: FaceMeasurements) -> str:
    whr, jcr = m.width_height_ratio, m.jaw_cheek_ratio
    fjr, fcr = m.forehead_jaw_ratio, m.forehead_cheek_ratio
    shape = FaceShape(shape)

    if shape is FaceShape.OVAL:
        return (f"Balanced proportions with width-to-height ratio of {whr:.2f} (ideal: 0.70-0.75). "
                f"The face is slightly longer than wide with gradual curves and a jaw width that's "
                f"{_pct(jcr)}% of cheekbone width, creating harmonious proportions.")
    if shape is FaceShape.ROUND:
        return (f"Nearly equal width and height with ratio of {whr:.2f} (close to 1.0). "
                f"Soft, curved features with jaw width at {_pct(jcr)}% of cheekbone width, "
                f"creating a circular appearance.")
    if shape is FaceShape.SQUARE:
        return (f"Strong, angular features with width-to-height ratio of {whr:.2f}. "
                f"Prominent jawline measuring {_pct(jcr)}% of cheekbone width (>90%), "
                f"creating defined, geometric proportions.")
    if shape is FaceShape.HEART:
        return (f"Wide forehead tapering to narrow chin. Forehead-to-jaw ratio of {fjr:.2f} "
                f"(forehead {_pct(fjr - 1)}% wider than jaw), with jaw width only {_pct(jcr)}% "
                f"of cheekbone width, creating an inverted triangle shape.")
    if shape is FaceShape.OBLONG:
        return (f"Elongated face with width-to-height ratio of {whr:.2f} (<0.65). "
                f"The face is significantly longer than wide, creating vertical emphasis.")
    return (f"Prominent cheekbones with narrow forehead and jaw. Forehead is {_pct(fcr)}% and jaw "
            f"{_pct(jcr)}% of cheekbone width (forehead-to-cheek ratio of {fcr:.2f}), so the "
            f"cheekbones are the widest point, creating an angular, faceted appearance.")


def classify(measurements: FaceMeasurements) -> FaceClassification:
    shape = determine_face_shape(measurements)
    return FaceClassification(
        shape=shape,
        confidence=calculate_confidence(shape, measurements),
        reasoning=generate_reasoning(shape, measurements),
        measurements=measurements,
    )


def classify_face_shape(landmarks: Sequence[Landmark], image_width: float = 1.0,
                        image_height: float = 1.0) -> FaceClassification:
    """Full pipeline: 468 landmarks -> anchor points -> measurements -> shape."""
    key = extract_key_landmarks(landmarks)
    return classify(calculate_measurements(key, image_width, image_height))


_STYLE_TIPS: Dict[FaceShape, List[str]] = {
    FaceShape.OVAL: [
        "Most versatile face shape - suits almost any hairstyle",
        "Can experiment with both short and long styles",
        "Center or side parts both work well",
    ],
    FaceShape.ROUND: [
        "Add height and volume on top to elongate",
        "Avoid chin-length cuts that emphasize width",
        "Side parts and angular styles add definition",
    ],
    FaceShape.SQUARE: [
        "Soften angles with layers and waves",
        "Avoid blunt, straight cuts at jawline",
        "Side-swept styles balance strong jaw",
    ],
    FaceShape.HEART: [
        "Add width at jawline with chin-length styles",
        "Side-swept bangs balance wide forehead",
        "Avoid excessive volume on top",
    ],
    FaceShape.OBLONG: [
        "Add width with horizontal layers",
        "Bangs shorten face appearance",
        "Avoid excessive height on top",
    ],
    FaceShape.DIAMOND: [
        "Add width at forehead and chin",
        "Side-swept styles balance cheekbones",
        "Chin-length cuts add jaw width",
    ],
}


def get_style_recommendations(shape: FaceShape) -> List[str]:
    return list(_STYLE_TIPS[FaceShape(shape)])
