import os.path
import time

###########################
# Output Naming Functions #
###########################


def file_prefix(path):
    """
    path is str.
    returns the base name of path without its final extension.
    """
    prefix = os.path.splitext(os.path.basename(path))[0]
    if not prefix:
        raise ValueError("Unable to extract prefix from '%s'" % path)
    return prefix


def epoch_millis(clock=time.time):
    return int(clock() * 1000)


def output_paths(prefix, runtime, split, directory=None):
    """
    prefix is str
    runtime is int milliseconds since the epoch, shared by every file of a run.
    split is int number of files.
    directory is maybe str.
    returns list of str named <prefix>-<runtime>-<index>.bson, index from 1.
    """
    if split < 1:
        raise ValueError("Split must be 1 or greater")
    names = ["%s-%d-%d.bson" % (prefix, runtime, index)
             for index in range(1, split + 1)]
    if directory is None:
        return names
    return [os.path.join(directory, name) for name in names]
