"""
PlantWise HTTP API (FastAPI)
"""
