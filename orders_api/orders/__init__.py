"""Module de gestion des commandes : schéma GraphQL, service et persistance."""
