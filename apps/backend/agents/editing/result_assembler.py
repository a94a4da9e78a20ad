from typing import List, Optional

from models.editing import ChangeSummary, EditResult, ImageProcessingInfo, SlideChange
from models.slide import Slide


def assemble(
    edited_slide: Slide,
    final_html: Optional[str],
    changes: List[SlideChange],
    summary: ChangeSummary,
    image_stats: Optional[ImageProcessingInfo] = None,
) -> EditResult:
    """Merge the resolved HTML and image statistics into the final EditResult."""
    update = {"htmlContent": final_html} if final_html is not None else {}
    return EditResult(
        editedSlide=edited_slide.model_copy(update=update),
        changes=list(changes),
        summary=summary,
        imageProcessing=image_stats,
    )
