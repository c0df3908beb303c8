"""
Free-text routing recommendations derived from a conversation analysis.
"""

from typing import List

from agents.analysis.types import ConversationAnalysis

DEFAULT_RECOMMENDATION = "Continue with current routing approach"


def generate_recommendations(analysis: ConversationAnalysis) -> List[str]:
    recommendations: List[str] = []

    if analysis.topic_stability < 0.3:
        recommendations.append("Consider using a generalist agent due to topic instability")
    elif analysis.topic_stability > 0.8 and analysis.dominant_topics:
        recommendations.append(
            f"Maintain focus on {analysis.dominant_topics[0]} with specialized agent"
        )

    for agent, perf in analysis.agent_performance.items():
        if perf.overuse_indicator:
            recommendations.append(f"Consider diversifying from {agent} to prevent overuse")
        if perf.success_rate < 0.5:
            recommendations.append(f"{agent} showing low success rate, consider alternatives")
        if perf.user_satisfaction == "negative":
            recommendations.append(f"User dissatisfaction detected with {agent}, try different approach")

    for pattern in analysis.patterns:
        recommendations.append(f"{pattern.type}: {pattern.description} - {pattern.recommendation}")

    for factor in analysis.continuity_factors:
        recommendations.append(f"{factor.type}: {factor.description} - {factor.recommendation}")

    return recommendations or [DEFAULT_RECOMMENDATION]
