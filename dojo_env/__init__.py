"""Frame segmentation and tabular Q-learning for agents trained on fighting-game frames."""

__version__ = "0.1.0"
__all__ = ["imaging", "segmentation", "q_learning"]