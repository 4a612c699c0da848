import logging
from bsonsplit import AUTO_FLUSH, split_file
from safeoutput import open as safeopen
from docopt import docopt, DocoptExit

SPLIT_USAGE = """
bsonsplit -- Program splits a BSON file round-robin into several BSON files.

Usage:
    bsonsplit [options] --split=<split> <path>

Options:
    -s <split>, --split=<split>   Number of files to produce. Must be at least 1.
    --dir=<dir>                   Directory to create the files in.
    --output=<output>             Name of output listing the created files.
    --flush=<flush>               Flush every file after this many documents [default: %d].
    -v, --verbose                 Log progress to stderr.
""" % AUTO_FLUSH

def positive_int(args, option):
  value = args.get(option)
  try:
    number = int(value)
  except (TypeError, ValueError):
    raise DocoptExit("%s must be an integer, got '%s'" % (option, value))
  if number < 1:
    raise DocoptExit("%s must be at least 1" % option)
  return number

def split_main(argv=None):
  args = docopt(SPLIT_USAGE, argv)
  split = positive_int(args, '--split')
  flush_every = positive_int(args, '--flush')
  if args.get('--verbose'):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
  paths = split_file(args.get('<path>'), split, args.get('--dir'), flush_every)
  with safeopen(args.get('--output')) as outfile:
    for path in paths:
      print(path, file=outfile)
