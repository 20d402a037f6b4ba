"""
Access control feature module.

Role-based grants with "own"/"any" possession, plus ownership checks for
users who may only touch their own records.
"""
