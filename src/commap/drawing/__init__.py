"""Drawing-layer handles and the reconciler that mirrors them into features."""

from commap.drawing.handle import DrawingGroup, DrawingHandle, ShapeHandle
from commap.drawing.reconciler import Reconciler, synthesize_id, timer_scheduler

__all__ = [
    "DrawingGroup",
    "DrawingHandle",
    "Reconciler",
    "ShapeHandle",
    "synthesize_id",
    "timer_scheduler",
]
