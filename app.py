"""
Development server.

    python app.py            # serve on :5000
    python app.py --seed     # create tables and a demo event first
"""
import sys

from reservacion import config
from reservacion.app import app, store
from reservacion.create_tables import create_tables
from reservacion.seed import seed_sample_event

if __name__ == '__main__':
    config.configure_logging()
    if "--seed" in sys.argv:
        create_tables(store.dynamodb)
        seed_sample_event(store)
    app.run(debug=True, host="0.0.0.0", port=5000)
