"""
Configuration spécifique au module Orders.
Contient les constantes et paramètres de configuration pour le module de gestion des commandes.
"""
from typing import Dict, List

# Statuts d'une commande (et de ses groupes / lignes)
ORDER_STATUS_NEW = "new"
ORDER_STATUS_PROCESSING = "coreOrderWorkflow/processing"
ORDER_STATUS_COMPLETED = "coreOrderWorkflow/completed"
ORDER_STATUS_CANCELED = "coreOrderWorkflow/canceled"

ALLOWED_ORDER_STATUS: List[str] = [
    ORDER_STATUS_NEW,
    ORDER_STATUS_PROCESSING,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_CANCELED,
]

# Libellés des statuts par langue (displayStatus)
DEFAULT_LANGUAGE = "en"
ORDER_STATUS_DISPLAY: Dict[str, Dict[str, str]] = {
    "en": {
        ORDER_STATUS_NEW: "New",
        ORDER_STATUS_PROCESSING: "Processing",
        ORDER_STATUS_COMPLETED: "Completed",
        ORDER_STATUS_CANCELED: "Canceled",
    },
    "fr": {
        ORDER_STATUS_NEW: "Nouvelle",
        ORDER_STATUS_PROCESSING: "En traitement",
        ORDER_STATUS_COMPLETED: "Terminée",
        ORDER_STATUS_CANCELED: "Annulée",
    },
}

# Référence client : alphabet sans caractères ambigus (0/O, 1/I)
REFERENCE_ID_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"
REFERENCE_ID_LENGTH = 8
REFERENCE_ID_MAX_ATTEMPTS = 5

# Limites
MAX_ITEMS_PER_GROUP: int = 50
MAX_FULFILLMENT_GROUPS: int = 10

# Formats d'affichage des montants (%s = symbole, %v = valeur)
CURRENCY_FORMATS: Dict[str, Dict[str, str]] = {
    "EUR": {"symbol": "€", "format": "%v %s"},
    "USD": {"symbol": "$", "format": "%s%v"},
    "GBP": {"symbol": "£", "format": "%s%v"},
    "CAD": {"symbol": "$", "format": "%s%v"},
    "CHF": {"symbol": "CHF", "format": "%s %v"},
}
