"""
Local runner - uses the offline provider so no API key is spent.
Run: python3 run_local.py
Then open: http://localhost:8080/
"""
import os
os.environ.setdefault("AI_PROVIDER", "offline")
os.environ.setdefault("FLASK_SECRET_KEY", "test-secret-key-local")

# Now import and run the app
from app import app

print("\n" + "=" * 60)
print("  LOCAL SERVER")
print("  Open: http://localhost:8080/")
print(f"  AI provider: {os.environ['AI_PROVIDER']}")
print("=" * 60 + "\n")

app.run(debug=True, host="0.0.0.0", port=8080, threaded=True)
