"""
lesnek: Let's Encrypt certificates over the ACME v1 protocol.

Features:
- Account key creation and registration (new-reg)
- HTTP-01 domain authorization through a web root, with a local self-check
- CSR generation with subjectAltNames for every requested domain
- Certificate retrieval with its "up" chain, stored as cert/chain/fullchain PEM
- YAML configuration
"""

__version__ = "0.1.0"
