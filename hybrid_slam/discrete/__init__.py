"""Discrete structures: DecisionTree and discrete potential tables."""
