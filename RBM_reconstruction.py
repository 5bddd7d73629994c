# RBM_reconstruction.py
import logging

import numpy as np

from neuralnet import LayerConf, LayerType, Phase, RBMConf
from neuralnet.helpers.logger import RunLogger
from neuralnet.layers import InputLayer, RBMHidLayer, RBMVisLayer
from neuralnet.optimizer import SGDOptimizer


# ------------------ Helpers ------------------
def bars_and_stripes(size=4):
    """All size x size images made of full rows or full columns, flattened."""
    patterns = []
    for bits in range(2 ** size):
        line = np.array([(bits >> i) & 1 for i in range(size)], dtype=np.float32)
        rows = np.repeat(line[:, None], size, axis=1)
        patterns.append(rows.ravel())
        patterns.append(rows.T.ravel())
    # all-on and all-off show up twice
    return np.unique(np.stack(patterns), axis=0)


def build_rbm(x, hdim, seed):
    inp = InputLayer()
    inp.name = "data"
    inp.feed(x)
    vis = RBMVisLayer(rng=np.random.default_rng(seed))
    hid = RBMHidLayer(rng=np.random.default_rng(seed + 1))
    vis.setup(LayerConf(name="rbm_vis", type=LayerType.RBM_VIS, rbm_conf=RBMConf(hdim=hdim)),
              [inp, hid])
    hid.setup(LayerConf(name="rbm_hid", type=LayerType.RBM_HID, rbm_conf=RBMConf(hdim=hdim)),
              [vis])
    return inp, vis, hid


def cd_step(inp, vis, hid, test=False):
    vis.compute_feature(Phase.POSITIVE, [inp, hid])
    hid.compute_feature(Phase.POSITIVE, [vis])
    negative = Phase.NEGATIVE | Phase.TEST if test else Phase.NEGATIVE
    vis.compute_feature(negative, [inp, hid])
    hid.compute_feature(negative, [vis])
    vis.compute_gradient(Phase.TRAIN, [inp, hid])
    hid.compute_gradient(Phase.TRAIN, [vis])


# ------------------ Main ------------------
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    X = bars_and_stripes(4)  # (30, 16)

    # Hyperparameters
    rbm_hdim = 16
    rbm_lr = 0.2
    rbm_momentum = 0.5
    rbm_steps = 2000
    rbm_tag = f"RBM_bars_hdim_{rbm_hdim}_lr_{rbm_lr}_steps_{rbm_steps}"

    print(f"Training RBM ({rbm_tag}) on {X.shape[0]} patterns")
    inp, vis, hid = build_rbm(X, rbm_hdim, seed=42)
    opt = SGDOptimizer(vis.get_params() + hid.get_params(), lr=rbm_lr, momentum=rbm_momentum)
    run = RunLogger(root="runs", tag=rbm_tag)

    for step in range(rbm_steps):
        vis.metric.reset()
        cd_step(inp, vis, hid, test=True)
        opt.step()
        run.log_metric(step, vis.metric)
        if step % 200 == 0 or step == rbm_steps - 1:
            print(f"step {step:5d}  {vis.metric.to_string()}")

    run.save_json()
    path = run.plot_metric("Squared Error", tag=rbm_tag)

    print("\n===== RBM Results =====")
    print("Final squared error:", run.history("Squared Error")[-1])
    print("Curve saved to", path)
