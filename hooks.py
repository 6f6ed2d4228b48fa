"""
Lifecycle interceptors for the Tour model.

- slugify_name: pre_save, derives `slug` from `name`
- exclude_secret: pre_read, hides secret tours from find-style reads
- hide_secret_stage: pre_aggregate, same for aggregation pipelines
"""

import logging
import re
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

SECRET_FIELD = "secretTour"


def not_secret() -> Dict[str, Any]:
    return {SECRET_FIELD: {"$ne": True}}


def slugify(value: str) -> str:
    """'Sahara Desert  Trek!' -> 'sahara-desert-trek'"""
    value = re.sub(r"[^a-z0-9\s-]", "", value.lower())
    return re.sub(r"[\s-]+", "-", value).strip("-")


def slugify_name(doc) -> None:
    if not doc.name:
        return
    doc.slug = slugify(doc.name)


def exclude_secret(query: Dict[str, Any]) -> Dict[str, Any]:
    if SECRET_FIELD in query:
        # keep the caller's condition, secret tours stay hidden regardless
        return {"$and": [query, not_secret()]}
    return {**query, **not_secret()}


def hide_secret_stage(pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # $geoNear only works as the first stage
    if pipeline and "$geoNear" in pipeline[0]:
        logger.debug("Pipeline starts with $geoNear, secret tour filter skipped")
        return list(pipeline)
    return [{"$match": not_secret()}] + list(pipeline)
