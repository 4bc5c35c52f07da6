from flask import Flask
from app.simulations import bp as simulations_bp

app = Flask(__name__)
app.register_blueprint(simulations_bp)

if __name__ == "__main__":
    app.run(debug=True)
