from flask import Flask, request, jsonify
from flask_cors import CORS
from network_engine import NetworkProcessor, NotFoundError, PolicyViolation
from network_engine.config import EngineConfig
from network_engine.output import OutputBuilder
import os
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)

# Enable CORS for all routes
CORS(app)

# Initialize the processor
processor = NetworkProcessor(EngineConfig.from_env())
output_builder = OutputBuilder()


@app.route("/api", methods=["GET"])
def api_info():
    """API information endpoint"""
    return jsonify({
        "status": "ok",
        "message": "Network Commission Engine API",
        "version": "1.0",
        "endpoints": {
            "commissions_summary": "/commissions-summary [POST]",
            "commission_balance": "/commissions/balance [POST]",
            "payments": "/payments [POST]",
            "reconcile": "/reconcile [POST]",
            "rates": "/rates [POST]",
            "buyback": "/sales/buyback [POST]",
            "health": "/health [GET]"
        }
    }), 200


@app.route("/health", methods=["GET"])
def health():
    """Health check for monitoring"""
    return jsonify({"status": "healthy"}), 200


def _run(operation, label):
    """Run a processor operation on the JSON body and map engine errors to HTTP responses."""
    try:
        input_data = request.get_json(force=True, silent=True)

        if not input_data:
            return jsonify({
                "error": "No input data provided",
                "status": "failed"
            }), 400

        logger.info(f"Processing {label}")
        result = operation(input_data)
        logger.info(f"{label} processed successfully")

        return jsonify(result), 200

    except PolicyViolation as e:
        # Business rule rejected the operation
        logger.warning(f"{label} rejected ({e.reason}): {e.message}")
        body = {"error": e.message, "reason": e.reason, "status": "rejected"}
        if e.transition is not None:
            body["transition"] = output_builder.build_transition(e.transition)
        return jsonify(body), 400

    except NotFoundError as e:
        logger.warning(f"{label}: {str(e)}")
        return jsonify({"error": str(e), "status": "not_found"}), 404

    except ValueError as e:
        # Validation errors from engine
        logger.error(f"Validation error: {str(e)}")
        return jsonify({
            "error": str(e),
            "status": "validation_failed"
        }), 400

    except Exception as e:
        # Unexpected errors
        logger.error(f"Processing error: {str(e)}", exc_info=True)
        return jsonify({
            "error": "An unexpected error occurred during processing",
            "status": "failed"
        }), 500


@app.route("/commissions-summary", methods=["POST"])
def commissions_summary():
    """Stage and commission summary for every member of the posted network"""
    return _run(processor.process_from_dict, "commission summary")


@app.route("/commissions/balance", methods=["POST"])
def commission_balance():
    """Earned vs paid commission for one member"""
    return _run(processor.balance_from_dict, "commission balance")


@app.route("/payments", methods=["POST"])
def payments():
    """Record an installment against a sale or investment"""
    return _run(processor.apply_payment_from_dict, "payment")


@app.route("/reconcile", methods=["POST"])
def reconcile():
    """Settle overdue sales and investments"""
    return _run(processor.reconcile_from_dict, "reconciliation")


@app.route("/rates", methods=["POST"])
def rates():
    """Append a new commission rate set"""
    return _run(processor.append_rates_from_dict, "rate change")


@app.route("/sales/buyback", methods=["POST"])
def sale_buyback():
    """Pay out a sale's buyback"""
    return _run(processor.settle_buyback_from_dict, "buyback")


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=False)
