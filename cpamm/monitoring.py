# cpamm/monitoring.py
import time
import psutil
from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry
from prometheus_client.exposition import make_wsgi_app
from wsgiref.simple_server import make_server, WSGIServer
from socketserver import ThreadingMixIn
import threading
import logging

from cpamm.events import Burn, Mint, Swap, Sync
from cpamm.pair import Pair

logger = logging.getLogger(__name__)

# Create a threaded WSGI server for the Prometheus metrics
class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """A WSGI server that runs in a separate thread to not block the main application."""
    allow_reuse_address = True  # Allow reusing the address immediately


class Monitor:
    """
    Prometheus metrics for every pair on a chain.

    Subscribes to the chain's committed events, so rolled-back calls never
    show up in the counters.
    """

    def __init__(self, chain, host="127.0.0.1", port=9090, serve=False):
        self.chain = chain
        self.host = host
        self.port = port
        self.server = None
        self.thread = None

        # Create a new, isolated registry for this chain
        self.registry = CollectorRegistry()

        self.reserve = Gauge('amm_pair_reserve', 'Pair reserve per token side', ['pair', 'side'], registry=self.registry)
        self.invariant_k = Gauge('amm_invariant_k', 'Constant product reserve0 * reserve1', ['pair'], registry=self.registry)
        self.total_supply = Gauge('amm_pair_total_supply', 'Outstanding liquidity shares', ['pair'], registry=self.registry)
        self.swaps = Counter('amm_swaps_total', 'Swaps executed', ['pair'], registry=self.registry)
        self.liquidity_events = Counter('amm_liquidity_events_total', 'Mints and burns', ['pair', 'kind'], registry=self.registry)
        self.swap_input = Histogram(
            'amm_swap_input_amount', 'Input amount per swap (raw units)', ['pair'],
            buckets=(10**3, 10**6, 10**9, 10**12, 10**15, 10**18, 10**21, float('inf')),
            registry=self.registry,
        )
        self.cpu_usage = Gauge('system_cpu_percent', 'Current CPU usage percent', registry=self.registry)
        self.memory_usage = Gauge('system_memory_percent', 'Current memory usage percent', registry=self.registry)
        self.last_event_time = Gauge('amm_last_event_timestamp', 'Wall clock time of the last committed event', registry=self.registry)

        chain.subscribe(self.handle_event)
        if serve:
            self.start_server()

    def start_server(self):
        """Manually creates and starts the Prometheus HTTP server with retry logic."""
        app = make_wsgi_app(self.registry)

        max_retries = 5
        retry_delay = 2

        for attempt in range(max_retries):
            try:
                self.server = make_server(self.host, self.port, app, ThreadingWSGIServer)

                self.thread = threading.Thread(target=self.server.serve_forever)
                self.thread.daemon = True
                self.thread.start()
                logger.info(f"Prometheus server started on http://{self.host}:{self.port}")
                return
            except OSError as e:
                if e.errno == 98:  # Address already in use
                    if attempt < max_retries - 1:
                        logger.warning(f"Port {self.port} in use, retrying in {retry_delay}s (attempt {attempt+1}/{max_retries})...")
                        time.sleep(retry_delay)
                    else:
                        logger.error(f"Failed to bind to port {self.port} after {max_retries} attempts")
                        raise
                else:
                    raise

    def stop_server(self):
        """Stops the HTTP server."""
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            logger.info("Prometheus server stopped.")

    def handle_event(self, event):
        label = event.emitter.hex()
        if isinstance(event, Sync):
            self.reserve.labels(pair=label, side='0').set(event.reserve0)
            self.reserve.labels(pair=label, side='1').set(event.reserve1)
            self.invariant_k.labels(pair=label).set(event.reserve0 * event.reserve1)
        elif isinstance(event, Swap):
            self.swaps.labels(pair=label).inc()
            self.swap_input.labels(pair=label).observe(event.amount0_in + event.amount1_in)
        elif isinstance(event, Mint):
            self.liquidity_events.labels(pair=label, kind='mint').inc()
        elif isinstance(event, Burn):
            self.liquidity_events.labels(pair=label, kind='burn').inc()
        else:
            return
        self.last_event_time.set(time.time())

    def update(self):
        """Refresh gauges from current pair state and the host process."""
        for contract in list(self.chain.contracts.values()):
            if isinstance(contract, Pair):
                label = contract.address.hex()
                reserve0, reserve1, _ = contract.get_reserves()
                self.reserve.labels(pair=label, side='0').set(reserve0)
                self.reserve.labels(pair=label, side='1').set(reserve1)
                self.invariant_k.labels(pair=label).set(reserve0 * reserve1)
                self.total_supply.labels(pair=label).set(contract.total_supply)

        self.cpu_usage.set(psutil.cpu_percent())
        self.memory_usage.set(psutil.virtual_memory().percent)
