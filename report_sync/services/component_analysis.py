"""Folding AI analysis results into room components."""

from typing import Any, Callable, Iterable, Optional

from report_sync.schemas.analysis import ComponentAnalysis
from report_sync.schemas.report import RoomComponent
from report_sync.utils.logging import get_logger

LOGGER = get_logger(__name__)


def merge_analysis(
    component: RoomComponent,
    analysis: Any,
    image_ids: Optional[Iterable[str]] = None,
) -> RoomComponent:
    """Copy the analysed fields onto a component.

    Images listed in ``image_ids`` (every image when omitted) are marked as
    AI processed and carry the analysis payload.

    Args:
        component: Component to update
        analysis: ComponentAnalysis or a raw analysis mapping
        image_ids: Ids of the images the analysis was computed from

    Returns:
        RoomComponent: Updated copy
    """
    result = ComponentAnalysis.from_payload(analysis)
    selected = set(image_ids) if image_ids is not None else None
    payload = result.model_dump(mode="json")

    images = []
    for image in component.images:
        if selected is None or image.id in selected:
            image = image.model_copy(update={"ai_processed": True, "ai_data": payload})
        images.append(image)

    LOGGER.debug(
        f"Merging analysis into component {component.id}: "
        f"rating={result.condition.rating.value}, images={len(images)}"
    )

    return component.model_copy(
        update={
            "description": result.description,
            "condition": result.condition.rating,
            "condition_summary": result.condition.summary,
            "condition_points": list(result.condition.points),
            "cleanliness": result.cleanliness,
            "notes": result.notes,
            "images": images,
        }
    )


def analysis_transform(
    analysis: Any, image_ids: Optional[Iterable[str]] = None
) -> Callable[[RoomComponent], RoomComponent]:
    """Component transform for ``RoomClassifier.transform_component``."""
    ids = list(image_ids) if image_ids is not None else None
    return lambda component: merge_analysis(component, analysis, ids)
