# Schemas package init: pydantic API contracts and scan-flow values
