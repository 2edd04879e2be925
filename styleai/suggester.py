from typing import Dict, List, Optional

from .config import SETTINGS
from .schemas import FaceShape, Hairstyle

# shape -> styles; "slug" names the template image under <base>/<shape>/
STYLE_RULES: Dict[str, List[Dict]] = {
    "oval": [
        {"id": "oval-1", "name": "Long Layers", "slug": "long-layers", "score": 95,
         "description": "Versatile layered cut that enhances your balanced proportions.",
         "reason": "Oval faces can pull off most styles. Layers add movement and dimension.",
         "tags": ["versatile", "professional", "modern"]},
        {"id": "oval-2", "name": "Textured Pixie", "slug": "textured-pixie", "score": 92,
         "description": "Short, piecey crop that shows off the face.",
         "reason": "Balanced proportions carry a short cut without needing correction.",
         "tags": ["short", "bold", "low-maintenance"]},
        {"id": "oval-3", "name": "Blunt Bob", "slug": "blunt-bob", "score": 90,
         "description": "Chin-length bob with a clean, straight edge.",
         "reason": "A crisp line at the chin frames an even jaw.",
         "tags": ["classic", "sleek"]},
        {"id": "oval-4", "name": "Curtain Bangs", "slug": "curtain-bangs", "score": 88,
         "description": "Centre-parted fringe sweeping to both sides.",
         "reason": "Soft fringe follows the natural curve of the forehead.",
         "tags": ["trendy", "soft"]},
        {"id": "oval-5", "name": "Slicked Back", "slug": "slicked-back", "score": 86,
         "description": "Polished style combed away from the face.",
         "reason": "Nothing to hide; an open hairline suits symmetric features.",
         "tags": ["formal", "sleek"]},
    ],
    "round": [
        {"id": "round-1", "name": "Long Angled Layers", "slug": "long-angled-layers", "score": 94,
         "description": "Layers that start below the chin and angle toward the face.",
         "reason": "Vertical lines lengthen the face and slim the cheeks.",
         "tags": ["lengthening", "layered"]},
        {"id": "round-2", "name": "Side-Swept Pompadour", "slug": "side-swept-pompadour", "score": 92,
         "description": "Volume on top swept to one side.",
         "reason": "Height on top elongates a face that is as wide as it is long.",
         "tags": ["volume", "bold"]},
        {"id": "round-3", "name": "Asymmetric Lob", "slug": "asymmetric-lob", "score": 90,
         "description": "Long bob, longer on one side.",
         "reason": "Asymmetry breaks up the circular outline.",
         "tags": ["modern", "asymmetric"]},
        {"id": "round-4", "name": "Deep Side Part", "slug": "deep-side-part", "score": 87,
         "description": "Hair parted well off-centre.",
         "reason": "The diagonal line adds angles to soft features.",
         "tags": ["classic", "easy"]},
        {"id": "round-5", "name": "High Ponytail", "slug": "high-ponytail", "score": 85,
         "description": "Sleek ponytail set at the crown.",
         "reason": "Pulling hair up draws the eye upward.",
         "tags": ["updo", "sleek"]},
    ],
    "square": [
        {"id": "square-1", "name": "Soft Waves", "slug": "soft-waves", "score": 94,
         "description": "Loose waves past the shoulder.",
         "reason": "Curves soften a strong, angular jaw.",
         "tags": ["romantic", "soft"]},
        {"id": "square-2", "name": "Wispy Side Bangs", "slug": "wispy-side-bangs", "score": 91,
         "description": "Feathered fringe swept to one side.",
         "reason": "Diagonal softness offsets a square hairline.",
         "tags": ["soft", "fringe"]},
        {"id": "square-3", "name": "Layered Shag", "slug": "layered-shag", "score": 89,
         "description": "Choppy layers throughout for texture.",
         "reason": "Texture around the jaw blurs hard corners.",
         "tags": ["textured", "trendy"]},
        {"id": "square-4", "name": "Long Bob with Curls", "slug": "curly-lob", "score": 87,
         "description": "Shoulder-length bob with loose curls.",
         "reason": "Rounded volume balances width at the jaw.",
         "tags": ["curly", "medium"]},
        {"id": "square-5", "name": "Messy Quiff", "slug": "messy-quiff", "score": 85,
         "description": "Tousled volume at the front.",
         "reason": "Height and mess pull attention off the jawline.",
         "tags": ["casual", "volume"]},
    ],
    "heart": [
        {"id": "heart-1", "name": "Chin-Length Bob", "slug": "chin-bob", "score": 94,
         "description": "Bob that ends right at the chin.",
         "reason": "Width at the jaw balances a wider forehead.",
         "tags": ["classic", "balancing"]},
        {"id": "heart-2", "name": "Side-Swept Fringe", "slug": "side-swept-fringe", "score": 92,
         "description": "Long fringe swept across the forehead.",
         "reason": "Covers part of the forehead to reduce top-heaviness.",
         "tags": ["fringe", "soft"]},
        {"id": "heart-3", "name": "Lob with Flipped Ends", "slug": "flipped-lob", "score": 89,
         "description": "Long bob with ends turned outward.",
         "reason": "Flipped ends add volume where the chin narrows.",
         "tags": ["playful", "medium"]},
        {"id": "heart-4", "name": "Low Side Bun", "slug": "low-side-bun", "score": 86,
         "description": "Bun gathered low at the nape, off-centre.",
         "reason": "Keeps volume low and away from the forehead.",
         "tags": ["updo", "elegant"]},
        {"id": "heart-5", "name": "Textured Crop", "slug": "textured-crop", "score": 84,
         "description": "Short crop with a textured fringe.",
         "reason": "A forward fringe narrows the forehead visually.",
         "tags": ["short", "textured"]},
    ],
    "oblong": [
        {"id": "oblong-1", "name": "Full Bangs", "slug": "full-bangs", "score": 94,
         "description": "Straight-across fringe at brow level.",
         "reason": "Bangs shorten the face's apparent length.",
         "tags": ["fringe", "bold"]},
        {"id": "oblong-2", "name": "Shoulder-Length Waves", "slug": "shoulder-waves", "score": 92,
         "description": "Waves that add width at the sides.",
         "reason": "Horizontal volume offsets a long, narrow face.",
         "tags": ["volume", "medium"]},
        {"id": "oblong-3", "name": "Curly Bob", "slug": "curly-bob", "score": 89,
         "description": "Chin-length bob with full curls.",
         "reason": "Width at the cheeks counters vertical emphasis.",
         "tags": ["curly", "short"]},
        {"id": "oblong-4", "name": "Side-Parted Crew", "slug": "side-parted-crew", "score": 86,
         "description": "Short sides with a modest side part.",
         "reason": "Keeps height on top in check.",
         "tags": ["short", "neat"]},
        {"id": "oblong-5", "name": "Layered Medium Cut", "slug": "layered-medium", "score": 84,
         "description": "Mid-length cut with layers from the cheek down.",
         "reason": "Layers at the sides add breadth.",
         "tags": ["layered", "medium"]},
    ],
    "diamond": [
        {"id": "diamond-1", "name": "Side-Swept Long Layers", "slug": "side-swept-layers", "score": 94,
         "description": "Long layers with a swept fringe.",
         "reason": "Adds width at the forehead to match the cheekbones.",
         "tags": ["layered", "long"]},
        {"id": "diamond-2", "name": "Chin-Length Curls", "slug": "chin-curls", "score": 91,
         "description": "Curly cut ending at the chin.",
         "reason": "Volume at the chin widens a narrow jaw.",
         "tags": ["curly", "short"]},
        {"id": "diamond-3", "name": "Deep Fringe", "slug": "deep-fringe", "score": 89,
         "description": "Heavy fringe starting from the crown.",
         "reason": "Fills out a narrow forehead.",
         "tags": ["fringe", "bold"]},
        {"id": "diamond-4", "name": "Tucked Bob", "slug": "tucked-bob", "score": 86,
         "description": "Bob tucked behind the ears.",
         "reason": "Shows off cheekbones while adding jaw width.",
         "tags": ["sleek", "medium"]},
        {"id": "diamond-5", "name": "Faux Hawk", "slug": "faux-hawk", "score": 83,
         "description": "Short sides with a raised centre strip.",
         "reason": "Vertical interest at the forehead balances the cheekbones.",
         "tags": ["edgy", "short"]},
    ],
}


def to_image(shape: str, slug: str, thumb: bool = False) -> str:
    base = SETTINGS.hairstyle_base_url.rstrip("/")
    sub = "/thumbs" if thumb else ""
    return f"{base}/{shape}{sub}/{slug.strip('/')}.png"


def _to_hairstyle(shape: str, r: Dict) -> Hairstyle:
    return Hairstyle(
        id=r["id"],
        name=r["name"],
        category=FaceShape(shape),
        image_path=to_image(shape, r["slug"]),
        thumbnail_path=to_image(shape, r["slug"], thumb=True),
        description=r["description"],
        suitability_score=r["score"],
        reasoning=r["reason"],
        tags=list(r.get("tags", [])),
    )


def get_hairstyles_by_category(face_shape: str) -> List[Hairstyle]:
    key = FaceShape(face_shape.lower().strip() if isinstance(face_shape, str) else face_shape).value
    return [_to_hairstyle(key, r) for r in STYLE_RULES.get(key, [])]


def get_recommendations(face_shape: str, limit: int = 5) -> List[Hairstyle]:
    """Best-suited styles for a face shape, highest suitability first."""
    styles = get_hairstyles_by_category(face_shape)
    styles.sort(key=lambda s: s.suitability_score, reverse=True)
    return styles[:limit]


def get_hairstyle_by_id(style_id: str) -> Optional[Hairstyle]:
    for shape, rules in STYLE_RULES.items():
        for r in rules:
            if r["id"] == style_id:
                return _to_hairstyle(shape, r)
    return None
