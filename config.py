"""
Runtime configuration

Everything is read from the environment (a local .env file is loaded first).
"""
import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "azad_bazaar")

ADMIN_KEY = os.getenv("ADMIN_KEY", "demo-admin-key")
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Checkout pricing policy (18% GST, free shipping above the threshold)
TAX_RATE = float(os.getenv("TAX_RATE", "0.18"))
FREE_SHIPPING_THRESHOLD = float(os.getenv("FREE_SHIPPING_THRESHOLD", "500"))
SHIPPING_FEE = float(os.getenv("SHIPPING_FEE", "50"))
CURRENCY = "INR"

# Admin dashboard
LOW_STOCK_THRESHOLD = int(os.getenv("LOW_STOCK_THRESHOLD", "10"))
REVENUE_WINDOW_DAYS = int(os.getenv("REVENUE_WINDOW_DAYS", "30"))

CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_UPLOAD_PRESET = os.getenv("CLOUDINARY_UPLOAD_PRESET")
CLOUDINARY_TIMEOUT = int(os.getenv("CLOUDINARY_TIMEOUT", "60"))
