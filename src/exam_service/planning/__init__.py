from exam_service.planning.allocation import allocate_by_weight
from exam_service.planning.plan_builder import build_plan

__all__ = ["allocate_by_weight", "build_plan"]
