"""Vision Builder backend: ten-question interview, vision analysis and rewrites."""
