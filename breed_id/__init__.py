"""
Dog breed identification system.

Classifies a photo into a ranked list of dog breeds and enriches each
candidate with descriptive text and sample images in the background.
"""
