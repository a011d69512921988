"""
api_server.py
~~~~~~~~~~~~~

Flask-based REST API server with WebSocket support for neural network training.

This module provides endpoints for:
- Creating and managing feed-forward networks
- Training networks with real-time progress updates via WebSockets
- Running predictions on trained networks
- Plotting the training error history

The server uses:
- Flask for REST API endpoints
- Flask-SocketIO for WebSocket communication
- Gevent for async background training tasks
- Matplotlib for training error plots

Networks live in memory only and are lost when the server restarts.
"""

import os
import sys
import uuid
import base64
import logging
from io import BytesIO
from numbers import Real
from typing import Dict, Any, List, Tuple

import gevent
from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO

# Use non-GUI backend for matplotlib (required for server environments)
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from feedforward.activations import ACTIVATIONS, get_activation
from feedforward.data_loader import load_sample_data
from feedforward.logging_config import configure_logging, is_production
from feedforward.matrix import Matrix
from feedforward.network import Network

# ============================================================================
# LOGGING SETUP
# ============================================================================

configure_logging()
logger = logging.getLogger(__name__)

# ============================================================================
# FLASK APP SETUP
# ============================================================================

app = Flask(__name__)
CORS(app, resources={r"/*": {"origins": "*"}})  # Allow requests from any origin

# SocketIO enables real-time communication (WebSockets) for training updates
socketio = SocketIO(
    app,
    cors_allowed_origins="*",
    async_mode='gevent',
    logger=not is_production(),
    engineio_logger=not is_production(),
    ping_timeout=60,
    ping_interval=25
)

DEFAULT_LAYER_SIZES = [2, 3, 1]
DEFAULT_ACTIVATION = 'sigmoid'
DEFAULT_LEARNING_RATE = 0.5
DEFAULT_EPOCHS = 1000

# ============================================================================
# GLOBAL STATE
# ============================================================================

# Networks currently loaded in memory: {network_id: network_info}
active_networks: Dict[str, Dict[str, Any]] = {}

# Training jobs being tracked: {job_id: job_info}
training_jobs: Dict[str, Dict[str, Any]] = {}


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def validate_vectors(value: Any, name: str) -> List[List[float]]:
    """
    Check that a request field is a non-empty list of numeric vectors.

    Raises:
        ValueError: If the field has the wrong structure
    """
    if not isinstance(value, list) or not value:
        raise ValueError(f'{name} must be a non-empty list of vectors')
    for vector in value:
        if (not isinstance(vector, list) or not vector
                or not all(_is_number(v) for v in vector)):
            raise ValueError(f'{name} must contain lists of numbers')
    return [[float(v) for v in vector] for vector in value]


def network_summary(network_id: str, info: Dict[str, Any]) -> Dict[str, Any]:
    """Describe a network for JSON responses."""
    net = info['network']
    return {
        'network_id': network_id,
        'architecture': net.layers,
        'activation': net.activation.name,
        'learning_rate': net.learning_rate,
        'trained': info['trained'],
        'training': info['training'],
        'mse': info['mse']
    }


def cleanup_finished_training_jobs() -> None:
    """
    Remove completed or failed training jobs from memory.

    Called before each new job is created so the training_jobs dictionary
    does not grow indefinitely. Pending and running jobs are kept.
    """
    finished_statuses = {'completed', 'failed'}
    jobs_to_remove = [
        job_id for job_id, job_info in training_jobs.items()
        if job_info.get('status') in finished_statuses
    ]

    for job_id in jobs_to_remove:
        del training_jobs[job_id]

    if jobs_to_remove:
        logger.info(f"Cleaned up {len(jobs_to_remove)} finished training job(s)")


def create_loss_plot(history: List[Tuple[int, float]]) -> str:
    """
    Create a base64-encoded PNG plot of the training error.

    Args:
        history: (epoch, mean squared error) pairs

    Returns:
        Base64-encoded PNG image string
    """
    epochs = [epoch for epoch, _ in history]
    errors = [error for _, error in history]

    plt.figure(figsize=(5, 3))
    plt.plot(epochs, errors, marker='.')
    plt.title("Training error")
    plt.xlabel("Epoch")
    plt.ylabel("Mean squared error")

    # Save image to a bytes buffer instead of a file
    buffer = BytesIO()
    plt.savefig(buffer, format='png', bbox_inches='tight')
    buffer.seek(0)
    img_base64 = base64.b64encode(buffer.getvalue()).decode('utf-8')
    plt.close()

    return img_base64


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.route('/api/status', methods=['GET'])
def get_status():
    """
    Return server status and statistics.

    Returns counts of active networks and training jobs that are
    currently in progress (status='pending' or 'training').
    """
    active_statuses = ('pending', 'training')
    active_training = sum(
        1 for job in training_jobs.values()
        if job.get('status') in active_statuses
    )

    return jsonify({
        'status': 'online',
        'active_networks': len(active_networks),
        'training_jobs': active_training
    }), 200


@app.route('/api/activations', methods=['GET'])
def list_activations():
    """List the activation functions networks can be created with."""
    return jsonify({'activations': sorted(ACTIVATIONS)}), 200


@app.route('/api/networks', methods=['POST'])
def create_network():
    """
    Create a new neural network.

    Request body (all optional):
        {
            'layer_sizes': [2, 3, 1],
            'activation': 'sigmoid',
            'learning_rate': 0.5,
            'seed': 42
        }

    Returns:
        JSON with network_id, architecture, and status
    """
    data = request.get_json(silent=True) or {}
    layer_sizes = data.get('layer_sizes', DEFAULT_LAYER_SIZES)
    activation_name = data.get('activation', DEFAULT_ACTIVATION)
    learning_rate = data.get('learning_rate', DEFAULT_LEARNING_RATE)
    seed = data.get('seed')

    # Validate: need at least input and output layers
    if (not isinstance(layer_sizes, list) or len(layer_sizes) < 2
            or not all(isinstance(s, int) and not isinstance(s, bool)
                       and s > 0 for s in layer_sizes)):
        logger.warning(f"Invalid architecture requested: {layer_sizes}")
        return jsonify({
            'error': 'Invalid architecture. Must have at least 2 layers '
                     'of positive integer sizes.'
        }), 400
    if not _is_number(learning_rate):
        return jsonify({'error': 'learning_rate must be a number'}), 400
    if seed is not None and (not isinstance(seed, int)
                             or isinstance(seed, bool) or seed < 0):
        return jsonify({'error': 'seed must be a non-negative integer'}), 400
    if not isinstance(activation_name, str):
        return jsonify({'error': 'activation must be a string'}), 400

    try:
        activation = get_activation(activation_name)
        net = Network(layer_sizes, activation, learning_rate, rng=seed)
    except ValueError as e:
        logger.warning(f"Rejected network creation: {e}")
        return jsonify({'error': str(e)}), 400

    network_id = str(uuid.uuid4())
    active_networks[network_id] = {
        'network': net,
        'trained': False,
        'training': False,
        'mse': None,
        'loss_history': [],
        'dataset': None
    }

    logger.info(f"Created network {network_id} with architecture {layer_sizes}")

    return jsonify({
        'network_id': network_id,
        'architecture': net.layers,
        'activation': activation.name,
        'learning_rate': learning_rate,
        'status': 'created'
    }), 201


@app.route('/api/networks', methods=['GET'])
def list_networks():
    """List all networks currently in memory."""
    networks = [
        network_summary(nid, info) for nid, info in active_networks.items()
    ]
    logger.debug(f"Listing {len(networks)} network(s)")
    return jsonify({'networks': networks}), 200


@app.route('/api/networks/<network_id>', methods=['GET'])
def get_network(network_id: str):
    """Return a network's configuration, weights and biases."""
    if network_id not in active_networks:
        logger.warning(f"Details requested for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    info = active_networks[network_id]
    net = info['network']
    details = network_summary(network_id, info)
    details['weights'] = [w.to_list() for w in net.weights]
    details['biases'] = [b.to_list() for b in net.biases]
    return jsonify(details), 200


@app.route('/api/networks/<network_id>', methods=['DELETE'])
def delete_network_endpoint(network_id: str):
    """Delete a network from memory."""
    if network_id not in active_networks:
        logger.warning(f"Delete attempted for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    if active_networks[network_id]['training']:
        return jsonify({'error': 'Network is currently training'}), 409

    del active_networks[network_id]
    logger.info(f"Deleted network {network_id}")

    return jsonify({'network_id': network_id, 'deleted': True}), 200


@app.route('/api/networks', methods=['DELETE'])
def delete_all_networks():
    """Delete every network that is not currently training."""
    idle_ids = [
        nid for nid, info in active_networks.items() if not info['training']
    ]
    for network_id in idle_ids:
        del active_networks[network_id]

    logger.info(f"Deleted {len(idle_ids)} network(s)")

    return jsonify({
        'deleted_count': len(idle_ids),
        'message': f'Successfully deleted {len(idle_ids)} network(s)'
    }), 200


@app.route('/api/networks/<network_id>/train', methods=['POST'])
def train_network(network_id: str):
    """
    Start training a network in the background.

    Request body (all optional):
        {
            'inputs': [[0, 0], [0, 1], [1, 0], [1, 1]],
            'targets': [[0], [1], [0], [1]],
            'epochs': 1000
        }

    Inputs and targets default to the sample dataset.

    Returns:
        JSON with job_id, network_id, and status
    """
    if network_id not in active_networks:
        logger.warning(f"Training requested for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    info = active_networks[network_id]
    if info['training']:
        return jsonify({'error': 'Network is already training'}), 409

    data = request.get_json(silent=True) or {}
    epochs = data.get('epochs', DEFAULT_EPOCHS)

    if not isinstance(epochs, int) or isinstance(epochs, bool) or epochs < 1:
        return jsonify({'error': 'epochs must be a positive integer'}), 400

    if 'inputs' in data or 'targets' in data:
        try:
            inputs = validate_vectors(data.get('inputs'), 'inputs')
            targets = validate_vectors(data.get('targets'), 'targets')
        except ValueError as e:
            return jsonify({'error': str(e)}), 400
    else:
        inputs, targets = load_sample_data()

    net = info['network']
    if len(inputs) != len(targets):
        return jsonify({
            'error': f'Got {len(inputs)} inputs but {len(targets)} targets'
        }), 400
    if any(len(x) != net.layers[0] for x in inputs):
        return jsonify({
            'error': f'Every input must have {net.layers[0]} values'
        }), 400
    if any(len(y) != net.layers[-1] for y in targets):
        return jsonify({
            'error': f'Every target must have {net.layers[-1]} values'
        }), 400

    cleanup_finished_training_jobs()

    job_id = str(uuid.uuid4())
    training_jobs[job_id] = {
        'network_id': network_id,
        'status': 'pending',
        'progress': 0,
        'epochs': epochs
    }
    info['training'] = True

    logger.info(
        f"Created training job {job_id} for network {network_id}: "
        f"epochs={epochs}, examples={len(inputs)}"
    )

    # Run training in background so we can return immediately
    socketio.start_background_task(
        train_network_task, network_id, job_id, inputs, targets, epochs
    )

    return jsonify({
        'job_id': job_id,
        'network_id': network_id,
        'status': 'training_started'
    }), 202


def train_network_task(
    network_id: str,
    job_id: str,
    inputs: List[List[float]],
    targets: List[List[float]],
    epochs: int
) -> None:
    """
    Background task that trains a neural network.

    Sends progress updates via WebSocket as training progresses.
    """
    info = active_networks[network_id]
    net = info['network']
    history = info['loss_history']

    def on_progress(data: Dict[str, Any]) -> None:
        """Called periodically during training to send progress updates."""
        progress = (data['epoch'] / data['total_epochs']) * 100
        mse = net.mean_squared_error(inputs, targets)
        history.append((base_epoch + data['epoch'], mse))

        training_jobs[job_id]['status'] = 'training'
        training_jobs[job_id]['progress'] = progress
        training_jobs[job_id]['mse'] = mse

        # Send update to connected clients via WebSocket
        socketio.emit('training_update', {
            'job_id': job_id,
            'network_id': network_id,
            'epoch': data['epoch'],
            'total_epochs': data['total_epochs'],
            'mse': mse,
            'elapsed_time': data['elapsed_time'],
            'progress': progress
        })

        # Let gevent send the message immediately
        gevent.sleep(0)

    try:
        logger.info(f"Starting training for job {job_id}")

        # Errors measured on a different dataset are not comparable
        if info['dataset'] != (inputs, targets):
            history.clear()
            info['dataset'] = (inputs, targets)
        if not history:
            history.append((0, net.mean_squared_error(inputs, targets)))
        base_epoch = history[-1][0]

        # Define yield function for cooperative multitasking
        # This allows HTTP requests to be processed during training
        def yield_to_other_tasks():
            gevent.sleep(0)

        net.train(
            inputs,
            targets,
            epochs,
            callback=on_progress,
            yield_func=yield_to_other_tasks
        )

        mse = net.mean_squared_error(inputs, targets)

        info['trained'] = True
        info['mse'] = mse

        training_jobs[job_id]['status'] = 'completed'
        training_jobs[job_id]['mse'] = mse
        training_jobs[job_id]['progress'] = 100

        logger.info(f"Training completed for job {job_id}: mse {mse:.6f}")

        # Notify clients that training is complete
        socketio.emit('training_complete', {
            'job_id': job_id,
            'network_id': network_id,
            'status': 'completed',
            'mse': mse,
            'progress': 100
        })
        gevent.sleep(0)

    except Exception as e:
        logger.exception(f"Training failed for job {job_id}: {e}")

        training_jobs[job_id]['status'] = 'failed'
        training_jobs[job_id]['error'] = str(e)

        socketio.emit('training_error', {
            'job_id': job_id,
            'network_id': network_id,
            'status': 'failed',
            'error': str(e)
        })
        gevent.sleep(0)

    finally:
        info['training'] = False


@app.route('/api/training/<job_id>', methods=['GET'])
def get_training_status(job_id: str):
    """Get the current status of a training job."""
    if job_id not in training_jobs:
        logger.warning(f"Status requested for non-existent job: {job_id}")
        return jsonify({'error': 'Training job not found'}), 404

    return jsonify(training_jobs[job_id]), 200


@app.route('/api/networks/<network_id>/predict', methods=['POST'])
def predict(network_id: str):
    """
    Run the network on one or more inputs.

    Request body:
        {'inputs': [[0, 1], [1, 1]]}

    Returns:
        JSON with one output vector per input
    """
    if network_id not in active_networks:
        logger.warning(f"Prediction requested for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    data = request.get_json(silent=True) or {}
    try:
        inputs = validate_vectors(data.get('inputs'), 'inputs')
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    net = active_networks[network_id]['network']
    try:
        outputs = [
            net.predict(Matrix.from_vector(vector)).to_vector()
            for vector in inputs
        ]
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({
        'network_id': network_id,
        'inputs': inputs,
        'outputs': outputs
    }), 200


@app.route('/api/networks/<network_id>/loss_plot', methods=['GET'])
def get_loss_plot(network_id: str):
    """Return a PNG plot of the network's training error history."""
    if network_id not in active_networks:
        logger.warning(f"Loss plot requested for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    history = active_networks[network_id]['loss_history']
    if not history:
        return jsonify({'error': 'Network has no training history'}), 404

    return jsonify({
        'network_id': network_id,
        'history': [list(point) for point in history],
        'image_data': create_loss_plot(history)
    }), 200


# ============================================================================
# SERVER STARTUP
# ============================================================================

if __name__ == '__main__':
    # Check if running in cloud environment (Railway, etc.)
    is_cloud = bool(os.environ.get('RAILWAY_STATIC_URL') or os.environ.get('PORT'))
    port = int(os.environ.get('PORT', 8000))

    if is_cloud:
        logger.info(f"Starting server in production mode on port {port}")
    else:
        logger.info(f"Starting server at http://localhost:{port}/")

    try:
        socketio.run(
            app,
            host='0.0.0.0',
            port=port,
            debug=not is_cloud,
            use_reloader=False,
            allow_unsafe_werkzeug=True
        )
    except OSError as e:
        if "Address already in use" in str(e):
            logger.error(f"Port {port} is already in use.")
            sys.exit(1)
        else:
            raise
