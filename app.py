"""
Fund Quant Strategy API
=======================
Flask JSON service around the strategy engine.

Endpoints:
- GET  /api/health          service status
- POST /api/strategy        evaluate a posted fund payload
- GET  /api/fund/<code>     fetch a fund via the runner and evaluate it

Run: python app.py [--mock]
Open: http://localhost:5000/api/health
"""

from datetime import datetime

import logging
from flask import Flask, jsonify, request

from fund_quant import __version__
from fund_quant.config import EngineConfig
from fund_quant.engine import StrategyEngine, FundInput
from fund_quant.orchestrator import FundStrategyRunner, normalize_code

logger = logging.getLogger(__name__)


def create_app(runner: FundStrategyRunner = None, engine: StrategyEngine = None,
               config: EngineConfig = None) -> Flask:
    """Build the Flask app; the runner is created lazily on first fund lookup."""
    config = config or EngineConfig()
    app = Flask(__name__)
    app.config['JSON_AS_ASCII'] = False

    state = {
        'engine': engine or (runner.engine if runner else StrategyEngine(config)),
        'runner': runner
    }

    def get_runner() -> FundStrategyRunner:
        if state['runner'] is None:
            state['runner'] = FundStrategyRunner(config)
        return state['runner']

    @app.route('/api/health')
    def health():
        return jsonify({
            'status': 'ok',
            'version': __version__,
            'time': datetime.now().isoformat(timespec='seconds')
        })

    @app.route('/api/strategy', methods=['POST'])
    def evaluate_strategy():
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({'error': 'JSON object body required'}), 400

        code = normalize_code(payload.get('code'))
        if code is None:
            return jsonify({'error': 'invalid fund code'}), 400
        payload['code'] = code

        try:
            fund = FundInput.from_dict(payload)
        except ValueError as e:
            return jsonify({'error': f'invalid payload: {e}'}), 400

        outcome = state['engine'].evaluate(fund)
        return jsonify(outcome.to_dict())

    @app.route('/api/fund/<code>')
    def get_fund(code):
        code = normalize_code(code)
        if code is None:
            return jsonify({'error': 'invalid fund code'}), 400

        result = get_runner().run_one(code)
        if result.outcome is None:
            return jsonify({'code': code, 'error': result.error}), 502
        return jsonify(result.to_dict())

    return app


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(description='Fund Quant Strategy API')
    parser.add_argument('--mock', action='store_true', help='Serve synthetic data')
    parser.add_argument('--port', type=int, default=5000)
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    runner = None
    if args.mock:
        from fund_quant.data import MockFundSource
        runner = FundStrategyRunner(source=MockFundSource())

    print("=" * 50)
    print("Fund Quant Strategy API")
    print(f"Open: http://localhost:{args.port}/api/health")
    print("=" * 50)

    create_app(runner=runner).run(host='0.0.0.0', port=args.port, debug=False)
