"""Request validation and log-safe identifier masking."""

import math
import re

from artrec.config import get_settings
from artrec.exceptions import InvalidRecommendationRequest
from artrec.schemas.recommendation import PriceRange, RecommendationRequest

IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
SLUG_RE = re.compile(r"^[a-zA-Z0-9_-]+$")

ALLOWED_ALGORITHMS = ("hybrid", "collaborative", "content", "auto")
MAX_STYLES = 10
MAX_STYLE_LENGTH = 50
MAX_CATEGORY_LENGTH = 50
MAX_PRICE = 1_000_000


def validate_user_id(user_id: str | None) -> str:
    if not user_id or not isinstance(user_id, str) or not user_id.strip():
        raise InvalidRecommendationRequest("User ID is required", field="user_id")
    user_id = user_id.strip()
    if not IDENTIFIER_RE.match(user_id):
        raise InvalidRecommendationRequest("Invalid user ID format", field="user_id")
    return user_id


def validate_limit(limit: int | None, default: int | None = None, maximum: int | None = None) -> int:
    """Default when missing, reject non-positive, clamp anything above ``maximum``."""
    settings = get_settings()
    default = default or settings.recommendation_default_limit
    maximum = maximum or settings.recommendation_max_limit

    if limit is None:
        return min(default, maximum)
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise InvalidRecommendationRequest("Limit must be an integer", field="limit")
    if limit < 1:
        raise InvalidRecommendationRequest("Limit must be greater than 0", field="limit")
    return min(limit, maximum)


def validate_category(category: str | None) -> str | None:
    if category is None:
        return None
    category = category.strip()
    if not category:
        return None
    if len(category) > MAX_CATEGORY_LENGTH or not SLUG_RE.match(category):
        raise InvalidRecommendationRequest("Invalid category", field="category")
    return category


def validate_styles(styles: list[str] | None) -> list[str] | None:
    if not styles:
        return None
    if len(styles) > MAX_STYLES:
        raise InvalidRecommendationRequest(f"Too many styles. Maximum {MAX_STYLES} allowed", field="style")

    validated = []
    for style in styles:
        style = (style or "").strip()
        if not style:
            raise InvalidRecommendationRequest("Style cannot be empty", field="style")
        if len(style) > MAX_STYLE_LENGTH:
            raise InvalidRecommendationRequest(
                f"Style name too long. Maximum {MAX_STYLE_LENGTH} characters", field="style"
            )
        if not SLUG_RE.match(style):
            raise InvalidRecommendationRequest("Style contains invalid characters", field="style")
        validated.append(style)
    return validated


def validate_price_range(price_range: PriceRange | None) -> PriceRange | None:
    if price_range is None:
        return None
    low, high = price_range.min, price_range.max
    if math.isnan(low) or math.isnan(high):
        raise InvalidRecommendationRequest("Price range values cannot be NaN", field="price_range")
    if low < 0 or high < 0:
        raise InvalidRecommendationRequest("Price range cannot be negative", field="price_range")
    if low > high:
        raise InvalidRecommendationRequest("Price range min cannot be greater than max", field="price_range")
    if high > MAX_PRICE:
        raise InvalidRecommendationRequest("Price range too high. Maximum 1,000,000", field="price_range")
    return price_range


def validate_algorithm(algorithm: str | None) -> str | None:
    if not algorithm:
        return None
    algorithm = algorithm.strip().lower()
    if algorithm not in ALLOWED_ALGORITHMS:
        raise InvalidRecommendationRequest(
            f"Invalid algorithm. Allowed: {', '.join(ALLOWED_ALGORITHMS)}", field="algorithm"
        )
    return algorithm


def validate_request(request: RecommendationRequest, max_limit: int | None = None) -> RecommendationRequest:
    """Return a normalized copy of ``request`` or raise InvalidRecommendationRequest."""
    return RecommendationRequest(
        user_id=validate_user_id(request.user_id),
        limit=validate_limit(request.limit, maximum=max_limit),
        category=validate_category(request.category),
        style=validate_styles(request.style),
        price_range=validate_price_range(request.price_range),
        algorithm=validate_algorithm(request.algorithm),
    )


def mask_identifier(value: str | None) -> str:
    """Keep the first 8 characters of an identifier for logs."""
    if not value:
        return "****"
    return value[:8] + "****"
