"""
AI-Visibility Audit Engine

Scores a site's search presence from Google Search Console and DataForSEO:
1. Classifies pages and keywords into business segments
2. Analyses money pages (opportunity, lost clicks, priority)
3. Computes pillar scores, brand overlay and snippet readiness
4. Rolls page metrics up into calibrated portfolio segments
"""

__version__ = "0.4.0"
