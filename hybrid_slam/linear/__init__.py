"""Linear Gaussian factors, conditionals and factor graphs."""
