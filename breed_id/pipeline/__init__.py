"""
Classification pipeline for dog breed identification.

Contains:
- Data model and boundary protocols
- Image preprocessing into model tensors
- Ranking of model confidences into Breed records
- ONNX inference adapter
- Request-scoped classification and enrichment pipeline
"""
