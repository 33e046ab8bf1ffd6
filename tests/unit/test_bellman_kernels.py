"""Unit tests for the backward-induction kernels."""

from __future__ import annotations

import numpy as np
import tensorflow as tf

tf.config.set_visible_devices([], 'GPU')

from scipy.special import logsumexp, softmax

from ccp_models.vfi.kernels.bellman_kernels import (
    bellman_step,
    bellman_step_core,
    compute_ev,
    compute_ev_core,
    terminal_step,
    terminal_step_core,
)

F64 = tf.float64


def _kernels(n_actions=3, n=4, seed=0):
    rng = np.random.default_rng(seed)
    G = rng.uniform(size=(n_actions, n, n))
    return G / G.sum(axis=-1, keepdims=True)


class TestComputeEV:

    def test_matches_matrix_product(self):
        G = _kernels()
        v = np.array([1.0, 2.0, -1.0, 0.5])
        beta = 0.9
        ev = compute_ev(tf.constant(v), tf.constant(G), tf.constant(beta, F64)).numpy()
        expected = beta * np.stack([G[a] @ v for a in range(3)], axis=-1)
        np.testing.assert_allclose(ev, expected, atol=1e-12)

    def test_constant_value_passes_through(self):
        """Stochastic rows map a constant V to beta times that constant."""
        G = _kernels()
        ev = compute_ev_core(
            tf.constant(np.full(4, 3.0)), tf.constant(G), tf.constant(0.5, F64)
        ).numpy()
        np.testing.assert_allclose(ev, np.full((4, 3), 1.5), atol=1e-12)


class TestTerminalStep:

    def test_perpetuity_closed_form(self):
        flow = np.array([[0.0, 1.0, 0.5], [0.2, -0.3, 0.1]])
        m, c = 11.0, 5.77
        q, v, p = terminal_step(tf.constant(flow), tf.constant(m, F64), tf.constant(c, F64))
        expected_q = m * flow + c
        np.testing.assert_allclose(q.numpy(), expected_q, atol=1e-12)
        np.testing.assert_allclose(
            v.numpy(), logsumexp(expected_q, axis=-1) + np.euler_gamma, atol=1e-10
        )
        np.testing.assert_allclose(p.numpy(), softmax(expected_q, axis=-1), atol=1e-12)


class TestBellmanStep:

    def test_probabilities_sum_to_one_and_v_above_max(self):
        G = _kernels(seed=1)
        flow = np.random.default_rng(2).normal(size=(4, 3))
        v_next = np.array([10.0, 11.0, 12.0, 13.0])
        q, v, p = bellman_step(
            tf.constant(flow), tf.constant(v_next), tf.constant(G), tf.constant(0.95, F64)
        )
        np.testing.assert_allclose(p.numpy().sum(axis=-1), np.ones(4), atol=1e-12)
        assert np.all(v.numpy() >= q.numpy().max(axis=-1))

    def test_core_matches_compiled(self):
        """Core (undecorated) and compiled versions give same result."""
        G = tf.constant(_kernels(seed=3))
        flow = tf.constant(np.random.default_rng(4).normal(size=(4, 3)))
        v_next = tf.constant(np.linspace(0.0, 1.0, 4))
        beta = tf.constant(0.9, F64)
        for r1, r2 in zip(bellman_step_core(flow, v_next, G, beta),
                          bellman_step(flow, v_next, G, beta)):
            np.testing.assert_allclose(r1.numpy(), r2.numpy(), atol=1e-12)
        for r1, r2 in zip(terminal_step_core(flow, beta, beta),
                          terminal_step(flow, beta, beta)):
            np.testing.assert_allclose(r1.numpy(), r2.numpy(), atol=1e-12)
