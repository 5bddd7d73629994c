"""
Non-owning N-d views over a Blob.

dim 0 is the batch size; the last axis absorbs whatever is left so that the
view always covers blob.count elements. Writing through a view writes into
the blob. No shape checks are done here; callers reshape blobs in setup().
"""


def tensor1(blob):
    return blob.data.reshape(blob.count)


def tensor2(blob):
    shape = blob.shape
    return blob.data.reshape(shape[0], blob.count // shape[0])


def tensor3(blob):
    shape = blob.shape
    return blob.data.reshape(shape[0], shape[1], blob.count // shape[0] // shape[1])


def tensor4(blob):
    shape = blob.shape
    return blob.data.reshape(shape[0], shape[1], shape[2], shape[3])
