from .sentiment_tools import analyze_sentiment, label_for

__all__ = ["analyze_sentiment", "label_for"]
