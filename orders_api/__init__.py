"""
API GraphQL de gestion des commandes.
"""
