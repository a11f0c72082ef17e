from .optimizer import OptimizerRuleOptions, OptimizerTargetOptions

__all__ = ["OptimizerRuleOptions", "OptimizerTargetOptions"]
